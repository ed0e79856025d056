from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    # "supabase" | "memory"
    knowledge_store: str = "supabase"
    memory_store_path: str = ".brand_search/index.json"

    supabase_url: str = "http://localhost:54321"
    supabase_service_key: str = ""
    supabase_brand_id: str = ""
    supabase_timeout: float = 30.0

    # "openai" | "sentence-transformers"
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-large"
    openai_api_key: str = ""

    # "cohere" | "cross-encoder" | "none"
    reranker_provider: str = "cohere"
    # Cohere model, or a HuggingFace model name for "cross-encoder"
    reranker_model: str = "rerank-v3.5"
    cohere_api_key: str = ""
    cohere_url: str = "https://api.cohere.ai/v1/rerank"
    cohere_timeout: float = 30.0

    search_limit: int = 10
    search_threshold: float = 0.3
    search_semantic_weight: float = 0.7
    search_diversity_lambda: float = 0.7
    search_candidate_multiplier: int = 3
    search_min_rerank_score: float = 0.0
    # "jaccard" | "embedding"
    search_diversity_similarity: str = "jaccard"

    chunk_max_tokens: int = 500
    chunk_min_tokens: int = 20
    chunk_include_heading: bool = True

    docs_path: str = "./docs"
    ingest_batch_size: int = 50

    evaluation_dataset_path: str = "tests/evaluation/search-eval-dataset.json"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()

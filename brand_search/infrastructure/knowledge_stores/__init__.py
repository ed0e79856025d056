"""Knowledge store implementations."""
from .memory_store import InMemoryKnowledgeStore
from .supabase_store import SupabaseKnowledgeStore

__all__ = ["InMemoryKnowledgeStore", "SupabaseKnowledgeStore"]

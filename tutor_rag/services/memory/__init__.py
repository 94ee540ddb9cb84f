from tutor_rag.services.memory.conversation_memory import ConversationMemory

__all__ = ["ConversationMemory"]

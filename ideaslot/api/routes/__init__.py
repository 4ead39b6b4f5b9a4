from ideaslot.api.routes import duplicates, health, ideas, research

__all__ = ["duplicates", "health", "ideas", "research"]

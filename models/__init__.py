from models.scan_result import MAX_USER_AGENT_LENGTH, BlockedAgent, Site

__all__ = ["MAX_USER_AGENT_LENGTH", "BlockedAgent", "Site"]

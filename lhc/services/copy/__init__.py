from lhc.services.copy.engine import StreamCopyEngine, consumer_command, producer_command

__all__ = ["StreamCopyEngine", "consumer_command", "producer_command"]

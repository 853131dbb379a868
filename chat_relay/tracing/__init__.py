from chat_relay.tracing.interface import NullTraceCollector, TraceCollector
from chat_relay.tracing.jsonl_tracer import JSONLTraceCollector
from chat_relay.tracing.log_tracer import LoggingTraceCollector

__all__ = ["JSONLTraceCollector", "LoggingTraceCollector", "NullTraceCollector", "TraceCollector"]

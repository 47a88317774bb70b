from .token import TaskToken, InterruptSignal
from .retry import RetryPolicy, DEFAULT_POLICY, execute_with_retry

__all__ = [
    'TaskToken',
    'InterruptSignal',
    'RetryPolicy',
    'DEFAULT_POLICY',
    'execute_with_retry'
]

"""
Sample-rate context shared by spectral components.

Components subscribe a handler at construction and cancel the subscription
when closed, so update order and lifetime are explicit.
"""

from typing import Callable, List, Optional

from .config import DEFAULT_SAMPLE_RATE
from .logging_utils import dsp_logger


SampleRateHandler = Callable[[float], None]


class Subscription:
    """Handle returned by SampleRateContext.subscribe()."""

    def __init__(self, context: 'SampleRateContext', handler: SampleRateHandler):
        self._context: Optional[SampleRateContext] = context
        self.handler = handler

    @property
    def active(self) -> bool:
        return self._context is not None

    def cancel(self):
        """Stop receiving notifications. Safe to call more than once."""
        if self._context is not None:
            self._context.unsubscribe(self)
            self._context = None


class SampleRateContext:
    """
    Broadcasts sample-rate changes to subscribed components.

    Handlers are called synchronously, in subscription order, from the
    thread that sets the rate.
    """

    def __init__(self, sample_rate: float = DEFAULT_SAMPLE_RATE):
        self._sample_rate = self._validate(sample_rate)
        self._subscriptions: List[Subscription] = []

    @staticmethod
    def _validate(rate: float) -> float:
        rate = float(rate)
        if rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {rate}")
        return rate

    @property
    def sample_rate(self) -> float:
        return self._sample_rate

    @sample_rate.setter
    def sample_rate(self, rate: float):
        rate = self._validate(rate)
        if rate == self._sample_rate:
            return
        dsp_logger.debug(f"Sample rate {self._sample_rate} -> {rate}")
        self._sample_rate = rate
        for sub in list(self._subscriptions):
            sub.handler(rate)

    @property
    def num_subscribers(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, handler: SampleRateHandler) -> Subscription:
        """
        Register a handler for sample-rate changes.

        The handler is not called on subscription; read sample_rate instead.
        """
        sub = Subscription(self, handler)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, subscription: Subscription):
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

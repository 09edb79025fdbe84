"""
Provider health tracking.

Keeps a bounded window of recent call outcomes per provider and ranks
providers from it. Rankings are advisory: the orchestrator still lets a
caller's preferred provider go first.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


@dataclass
class ProviderHealth:
    """Point-in-time view of one provider's window"""
    provider: str
    total_calls: int
    successes: int
    failures: int
    mean_latency: Optional[float]
    last_failure_at: Optional[float] = None

    @property
    def success_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.successes / self.total_calls

    @property
    def healthy(self) -> bool:
        return self.total_calls == 0 or self.successes > 0

    def to_dict(self):
        return {
            "provider": self.provider,
            "total_calls": self.total_calls,
            "successes": self.successes,
            "failures": self.failures,
            "success_rate": round(self.success_rate, 3),
            "mean_latency": round(self.mean_latency, 3) if self.mean_latency is not None else None,
            "last_failure_at": self.last_failure_at,
            "healthy": self.healthy,
        }


class ProviderHealthTracker:
    """Rolling success/latency window per provider, safe across threads"""

    def __init__(self, window_size: int = 50, declaration_order: Sequence[str] = ()):
        if window_size <= 0:
            raise ValueError("window_size must be positive")
        self.window_size = window_size
        self._order: List[str] = list(declaration_order)
        self._windows: Dict[str, Deque[Tuple[bool, float]]] = {}
        self._last_failure: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _window(self, provider: str) -> Deque[Tuple[bool, float]]:
        window = self._windows.get(provider)
        if window is None:
            window = deque(maxlen=self.window_size)
            self._windows[provider] = window
            if provider not in self._order:
                self._order.append(provider)
        return window

    def record(self, provider: str, success: bool, latency: float) -> None:
        with self._lock:
            self._window(provider).append((success, max(0.0, latency)))
            if not success:
                self._last_failure[provider] = time.time()

    def _stats(self, provider: str) -> ProviderHealth:
        window = self._windows.get(provider, ())
        latencies = [latency for ok, latency in window if ok]
        successes = len(latencies)
        return ProviderHealth(
            provider=provider,
            total_calls=len(window),
            successes=successes,
            failures=len(window) - successes,
            mean_latency=sum(latencies) / successes if successes else None,
            last_failure_at=self._last_failure.get(provider),
        )

    def rank(self, providers: Iterable[str]) -> List[str]:
        """Order providers best-first.

        Providers with no successes in the window sort last. Among the rest,
        lower mean latency of successful calls wins. Ties keep declaration
        order, so an empty tracker returns the declaration order unchanged.
        """
        providers = list(dict.fromkeys(providers))
        with self._lock:
            stats = {p: self._stats(p) for p in providers}
            order = {p: i for i, p in enumerate(self._order)}

        def sort_key(provider: str):
            health = stats[provider]
            position = order.get(provider, len(order) + providers.index(provider))
            if health.successes == 0:
                return (1, 0.0, position)
            return (0, health.mean_latency, position)

        return sorted(providers, key=sort_key)

    def expected_latency(self, provider: str) -> Optional[float]:
        """Mean latency of the provider's recent successful calls, if any"""
        with self._lock:
            return self._stats(provider).mean_latency

    def snapshot(self, providers: Optional[Iterable[str]] = None) -> Dict[str, ProviderHealth]:
        with self._lock:
            names = list(providers) if providers is not None else list(self._order)
            return {name: self._stats(name) for name in names}

    def reset(self, provider: Optional[str] = None) -> None:
        with self._lock:
            if provider is None:
                self._windows.clear()
                self._last_failure.clear()
            else:
                self._windows.pop(provider, None)
                self._last_failure.pop(provider, None)
        logger.info(f"Health window reset for {provider or 'all providers'}")

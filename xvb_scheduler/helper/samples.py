from collections import deque

from xvb_scheduler.config.config import XVB_SAMPLES_CAPACITY


class SampleWindow:
    """
    Rolling buffer holding one hashrate sample per decision window over the last hour.

    The buffer starts full of zeros so the first averages after a start are
    conservative rather than inflated by a single sample.
    """
    def __init__(self, capacity=XVB_SAMPLES_CAPACITY, prefill=True):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._samples = deque(maxlen=capacity)
        if prefill:
            self._samples.extend([0.0] * capacity)

    @property
    def capacity(self):
        return self._samples.maxlen

    def push(self, hashrate):
        self._samples.append(float(hashrate))

    def average(self):
        """Arithmetic mean of the samples held, 0.0 when empty."""
        if not self._samples:
            return 0.0
        return sum(self._samples) / len(self._samples)

    def values(self):
        return list(self._samples)

    def clear(self, prefill=True):
        self._samples.clear()
        if prefill:
            self._samples.extend([0.0] * self.capacity)

    def __len__(self):
        return len(self._samples)

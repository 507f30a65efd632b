"""Named tensor container passed across the inference engine boundary."""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Tensor:
    """A named, typed, shaped numeric buffer.

    Attributes:
        name: Graph input/output name (e.g., "images", "selected")
        data: Array holding the values; its dtype and shape are the tensor's
    """

    name: str
    data: np.ndarray

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(int(d) for d in self.data.shape)

    @property
    def flat(self) -> np.ndarray:
        """Row-major flat view of the values."""
        return self.data.reshape(-1)

    def renamed(self, name: str) -> "Tensor":
        """Same values under another graph name."""
        return Tensor(name=name, data=self.data)

    @classmethod
    def zeros(cls, name: str, shape: tuple[int, ...], dtype=np.float32) -> "Tensor":
        return cls(name=name, data=np.zeros(shape, dtype=dtype))

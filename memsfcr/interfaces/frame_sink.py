from typing import Protocol
from memsfcr.protocol.dataframe import DataFrame


class FrameSink(Protocol):
    def on_frame(self, frame: DataFrame) -> None: ...
    def close(self) -> None: ...

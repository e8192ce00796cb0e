"""The SDK exporter: a router pre-wired with the standard chain per data type."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from telexport._internal.logging import FailureHandler, describe, log_failure
from telexport.config import Config, PipelineConfig
from telexport.exporters.base import Exporter
from telexport.exporters.nonblocking import NonBlockingExporter
from telexport.router import Router
from telexport.records import DataType
from telexport.transformers import AttributeLimiter, Batcher

logger = logging.getLogger(__name__)


def build_chain(
    terminal: Exporter,
    pipeline: PipelineConfig,
    on_failure: FailureHandler = log_failure,
    name: Optional[str] = None,
) -> AttributeLimiter:
    """Build AttributeLimiter -> Batcher -> NonBlockingExporter(terminal)."""
    return AttributeLimiter(
        Batcher(
            NonBlockingExporter(terminal, on_failure=on_failure, name=name),
            max_batch_size=pipeline.max_batch_size,
            schedule_delay=pipeline.schedule_delay,
            on_failure=on_failure,
        ),
        max_attributes=pipeline.max_attributes,
        on_failure=on_failure,
    )


class CompositeExporter(Router):
    """Router with one standard chain per configured data type.

    Because it is a Router, and a Router is an Exporter, a composite can be
    registered into another router like any other exporter.

    Args:
        terminals: Terminal exporter per data type.
        pipeline: Chain settings shared by every data type.
        enabled_types: Types whose registrations are enabled. Defaults to
            every type in ``terminals``; the others are registered disabled.
        on_failure: Receives failures from the router and every chain link.
    """

    def __init__(
        self,
        terminals: Mapping[DataType, Exporter],
        pipeline: Optional[PipelineConfig] = None,
        enabled_types: Optional[frozenset[DataType]] = None,
        on_failure: FailureHandler = log_failure,
    ) -> None:
        super().__init__(on_failure=on_failure)
        self._pipeline = pipeline or PipelineConfig()
        self._chains: dict[DataType, AttributeLimiter] = {}
        enabled = None if enabled_types is None else {DataType.parse(t) for t in enabled_types}

        for data_type, terminal in terminals.items():
            data_type = DataType.parse(data_type)
            chain = build_chain(
                terminal,
                self._pipeline,
                on_failure=on_failure,
                name=f"{data_type.value}-{describe(terminal)}",
            )
            self._chains[data_type] = chain
            self.register(data_type, chain, enabled is None or data_type in enabled)

        logger.debug(
            "CompositeExporter wired for %s",
            ", ".join(t.value for t in self._chains) or "no data types",
        )

    @classmethod
    def from_config(
        cls,
        config: Config,
        terminals: Mapping[DataType, Exporter],
        on_failure: FailureHandler = log_failure,
    ) -> "CompositeExporter":
        return cls(
            terminals,
            pipeline=config.pipeline,
            enabled_types=config.enabled_types,
            on_failure=on_failure,
        )

    @property
    def pipeline(self) -> PipelineConfig:
        return self._pipeline

    def chain(self, data_type: DataType) -> AttributeLimiter:
        """Head of the chain built for ``data_type``.

        Raises:
            KeyError: If no terminal was configured for ``data_type``.
        """
        return self._chains[DataType.parse(data_type)]

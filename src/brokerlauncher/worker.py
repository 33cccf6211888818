"""
Worker (Kafka broker) setup.

Everything the broker process needs once a broker id has been won: the JVM
memory options derived from the heap size, the process environment, the
rendered ``server.properties`` and the unpacked distribution.
"""

from __future__ import annotations

import logging
import os
import tarfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, PackageLoader, StrictUndefined, TemplateError

from brokerlauncher.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = (
    "./kafka-exec/bin/kafka-run-class.sh -name kafkaServer -loggc kafka.Kafka server.properties"
)
DEFAULT_TEMPLATE_NAME = "server.properties.j2"
DEFAULT_ARCHIVE = "kafka-exec.tar.xz"
SCALA_VERSION = "2.10.3"

GC_OPTIONS = "-XX:+UseConcMarkSweepGC -XX:+CMSIncrementalMode"
TUNING_OPTIONS = "-Xss256k -XX:+UseTLAB -XX:+AlwaysPreTouch"
JVM_PERFORMANCE_OPTS = (
    "-server -XX:+UseCompressedOops -XX:+CMSClassUnloadingEnabled "
    "-XX:+CMSScavengeBeforeRemark -XX:+DisableExplicitGC"
)
LOG4J_OPTS = "-Dlog4j.configuration=file:log4j.properties"


@dataclass(frozen=True)
class MemoryOptions:
    """
    JVM memory sizing derived from the heap size.

    Attributes:
        heap_size: Maximum heap in megabytes
    """

    heap_size: int

    @property
    def max_heap(self) -> str:
        return f"-Xmx{self.heap_size}m"

    @property
    def min_heap(self) -> str:
        return f"-Xms{self.heap_size // 2}m"

    @property
    def new_size(self) -> str:
        return f"-XX:NewSize={self.heap_size // 3}m"

    @property
    def max_new_size(self) -> str:
        return f"-XX:MaxNewSize={self.heap_size // 3}m"

    @property
    def heap_opts(self) -> str:
        """Value of KAFKA_HEAP_OPTS."""
        return " ".join(
            [
                GC_OPTIONS,
                self.max_heap,
                self.min_heap,
                self.new_size,
                self.max_new_size,
                TUNING_OPTIONS,
            ]
        )


def build_worker_environment(
    heap_size: int,
    ports: Sequence[str],
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """
    Build the environment for the broker process.

    The Kafka variables are layered over ``base`` (the launcher's own
    environment by default), like a shell ``env VAR=... cmd`` would.

    Args:
        heap_size: Heap size in megabytes
        ports: Port list; index 1 is the JMX port
        base: Environment to extend

    Returns:
        Complete environment mapping
    """
    if len(ports) < 2:
        raise ConfigurationError(f"A JMX port is required at index 1, got ports {list(ports)}")

    memory = MemoryOptions(heap_size)
    environment = dict(os.environ if base is None else base)
    environment.update(
        {
            "KAFKA_HEAP_OPTS": memory.heap_opts,
            "SCALA_VERSION": SCALA_VERSION,
            "KAFKA_LOG4J_OPTS": LOG4J_OPTS,
            "KAFKA_JVM_PERFORMANCE_OPTS": JVM_PERFORMANCE_OPTS,
            "JMX_PORT": str(ports[1]),
        }
    )
    return environment


def _template_environment(template_path: str | Path | None) -> tuple[Environment, str]:
    if template_path is None:
        loader: Any = PackageLoader("brokerlauncher", "templates")
        name = DEFAULT_TEMPLATE_NAME
    else:
        path = Path(template_path)
        loader = FileSystemLoader(str(path.parent))
        name = path.name
    env = Environment(
        loader=loader,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    return env, name


def render_server_properties(
    output_path: str | Path,
    context: Mapping[str, Any],
    template_path: str | Path | None = None,
) -> Path:
    """
    Render the broker configuration file.

    Args:
        output_path: Where to write ``server.properties``
        context: Template variables (broker_id, ports, heap_size, ...)
        template_path: Jinja2 template; the packaged default when None

    Returns:
        Path of the written file

    Raises:
        ConfigurationError: If the template is missing or references an
            undefined variable
    """
    env, name = _template_environment(template_path)
    try:
        rendered = env.get_template(name).render(**context)
    except TemplateError as e:
        raise ConfigurationError(f"Cannot render {name}: {e}") from e

    output = Path(output_path)
    output.write_text(rendered, encoding="utf-8")
    logger.info("Wrote %s", output, extra={"broker_id": context.get("broker_id")})
    return output


def template_context(
    broker_id: int,
    heap_size: int,
    ports: Sequence[str],
    zk_connect: str,
    hostname: str,
) -> dict[str, Any]:
    """Variables available to the server.properties template."""
    memory = MemoryOptions(heap_size)
    return {
        "broker_id": broker_id,
        "heap_size": heap_size,
        "ports": list(ports),
        "port": ports[0],
        "jmx_port": ports[1],
        "zk_connect": zk_connect,
        "hostname": hostname,
        "heap_opts": memory.heap_opts,
        "min_heap": memory.min_heap,
        "new_size": memory.new_size,
    }


def unpack_distribution(archive: str | Path, destination: str | Path = ".") -> bool:
    """
    Extract the broker distribution archive.

    Args:
        archive: Path to the tar archive (any compression tarfile understands)
        destination: Directory to extract into

    Returns:
        True if the archive was extracted, False if it does not exist
    """
    archive_path = Path(archive)
    if not archive_path.exists():
        logger.info("No distribution archive at %s, using existing files", archive_path)
        return False

    with tarfile.open(archive_path) as tar:
        tar.extractall(path=destination, filter="data")
    logger.info("Unpacked %s into %s", archive_path, destination)
    return True

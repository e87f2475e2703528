"""Configuration management for the Arcane stream operator.

This module provides the configuration system for the operator using
Pydantic Settings. All settings are loaded from environment variables
with sensible defaults for a cluster deployment.

## Configuration Sources

Configuration is read from environment variables at process startup. The
`get_settings()` function uses `@lru_cache` to ensure settings are
loaded once per process (containers have static env vars, so this is
safe and efficient).

## Environment Variables

The following environment variables are supported (all optional with
defaults):

**Environment Detection**
- `ARCANE_ENV`: Explicit environment override (`cluster` or `local`).
  If not set, automatically detected via Kubernetes service account
  token or `KUBERNETES_SERVICE_HOST`.
- `K8S_NAMESPACE`: Namespace the operator runs in (default: `arcane`)

**StreamClass watch**
- `STREAM_CLASS_NAMESPACE`: Namespace watched for StreamClass resources
  (default: `K8S_NAMESPACE`)
- `STREAM_CLASS_API_GROUP`: StreamClass CRD group
  (default: `streaming.sneaksanddata.com`)
- `STREAM_CLASS_API_VERSION`: StreamClass CRD version (default: `v1beta1`)
- `STREAM_CLASS_PLURAL`: StreamClass CRD plural name
  (default: `stream-classes`)
- `STREAM_CLASS_BUFFER_CAPACITY`: Event buffer size for the StreamClass
  watch (default: `100`)

**Streaming job watch**
- `STREAMING_JOB_NAMESPACE`: Namespace watched for streaming jobs
  (default: `K8S_NAMESPACE`)
- `STREAMING_JOB_BUFFER_CAPACITY`: Event buffer size for the job watch
  (default: `1000`)
- `STREAMING_JOB_DELETE_PROPAGATION`: Propagation policy used when a job
  is stopped (default: `Foreground`)

**Job templates**
- `JOB_TEMPLATE_API_GROUP`: Job template CRD group
  (default: `streaming.sneaksanddata.com`)
- `JOB_TEMPLATE_API_VERSION`: Job template CRD version (default: `v1`)
- `JOB_TEMPLATE_PLURAL`: Job template CRD plural name
  (default: `streaming-job-templates`)

**Kubernetes API resilience**
- `K8S_RETRY_MAX_ATTEMPTS`: Max attempts per API call (default: `3`)
- `K8S_RETRY_MIN_WAIT`: Min retry wait seconds (default: `0.5`)
- `K8S_RETRY_MAX_WAIT`: Max retry wait seconds (default: `10.0`)
- `K8S_CIRCUIT_BREAKER_THRESHOLD`: Failures before circuit opens
  (default: `5`)
- `K8S_CIRCUIT_BREAKER_TIMEOUT`: Circuit recovery timeout in seconds
  (default: `30`)
- `K8S_WATCH_TIMEOUT_SECONDS`: Server-side timeout of one watch request
  (default: `300`)

**Reconciliation**
- `WATCH_RESTART_MIN_WAIT`: Initial backoff before a failed watch is
  re-subscribed, seconds (default: `10.0`)
- `WATCH_RESTART_MAX_WAIT`: Upper bound for that backoff, seconds
  (default: `180.0`)
- `DEDUP_CACHE_SIZE`: Max entries in the event deduplicator
  (default: `10000`)
- `STREAM_CLASS_CACHE_SIZE`: Max entries in the StreamClass cache
  (default: `256`)
- `OVERFLOW_RESTART_DELAY`: Seconds before a kind whose buffer overflowed
  is re-subscribed (default: `10.0`)
- `SHUTDOWN_TIMEOUT`: Seconds to wait for in-flight commands on shutdown
  (default: `30.0`)

**HTTP server**
- `API_HOST`: Bind address for probes and metrics (default: `0.0.0.0`)
- `API_PORT`: Port for probes and metrics (default: `8080`)

## Usage

```python
from arcane_operator.config import get_settings

settings = get_settings()
settings.stream_class.plural  # "stream-classes"
```
"""

import os
from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import SettingsConfigDict


def _is_in_cluster() -> bool:
    """Detect if running inside a Kubernetes cluster.

    Checks for:
    1. Explicit ARCANE_ENV=cluster environment variable
    2. Kubernetes service account token
    3. KUBERNETES_SERVICE_HOST environment variable

    Returns:
        True if running in-cluster, False otherwise.
    """
    env_override = os.getenv("ARCANE_ENV")
    if env_override:
        return env_override.lower() == "cluster"

    if os.path.exists("/var/run/secrets/kubernetes.io/serviceaccount/token"):
        return True

    return bool(os.getenv("KUBERNETES_SERVICE_HOST"))


class StreamClassOperatorConfig(BaseModel):
    """Where StreamClass resources live and how they are watched.

    Attributes:
        namespace: Namespace watched for StreamClass resources.
        api_group: StreamClass CRD group.
        api_version: StreamClass CRD version.
        plural: StreamClass CRD plural name.
        max_buffer_capacity: Bounded event buffer size for the watch.
    """

    namespace: str
    api_group: str = "streaming.sneaksanddata.com"
    api_version: str = "v1beta1"
    plural: str = "stream-classes"
    max_buffer_capacity: int = Field(default=100, gt=0)

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls, namespace: str = "arcane") -> "StreamClassOperatorConfig":
        """Create StreamClassOperatorConfig from environment variables.

        Args:
            namespace: Operator namespace, used when STREAM_CLASS_NAMESPACE
                is not set.

        Returns:
            Configured StreamClassOperatorConfig instance.
        """
        return cls(
            namespace=os.getenv("STREAM_CLASS_NAMESPACE", namespace),
            api_group=os.getenv("STREAM_CLASS_API_GROUP", "streaming.sneaksanddata.com"),
            api_version=os.getenv("STREAM_CLASS_API_VERSION", "v1beta1"),
            plural=os.getenv("STREAM_CLASS_PLURAL", "stream-classes"),
            max_buffer_capacity=int(os.getenv("STREAM_CLASS_BUFFER_CAPACITY", "100")),
        )


class StreamingJobOperatorConfig(BaseModel):
    """How streaming jobs are watched and stopped.

    Attributes:
        namespace: Namespace watched for streaming jobs.
        max_buffer_capacity: Bounded event buffer size for the job watch.
        delete_propagation_policy: Propagation policy passed when a job is
            deleted. `Foreground` delays the Deleted event until pods are gone.
    """

    namespace: str
    max_buffer_capacity: int = Field(default=1000, gt=0)
    delete_propagation_policy: str = "Foreground"

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls, namespace: str = "arcane") -> "StreamingJobOperatorConfig":
        """Create StreamingJobOperatorConfig from environment variables."""
        return cls(
            namespace=os.getenv("STREAMING_JOB_NAMESPACE", namespace),
            max_buffer_capacity=int(os.getenv("STREAMING_JOB_BUFFER_CAPACITY", "1000")),
            delete_propagation_policy=os.getenv("STREAMING_JOB_DELETE_PROPAGATION", "Foreground"),
        )


class JobTemplateConfig(BaseModel):
    """CRD coordinates of streaming job templates."""

    api_group: str = "streaming.sneaksanddata.com"
    api_version: str = "v1"
    plural: str = "streaming-job-templates"

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "JobTemplateConfig":
        return cls(
            api_group=os.getenv("JOB_TEMPLATE_API_GROUP", "streaming.sneaksanddata.com"),
            api_version=os.getenv("JOB_TEMPLATE_API_VERSION", "v1"),
            plural=os.getenv("JOB_TEMPLATE_PLURAL", "streaming-job-templates"),
        )


class KubernetesConfig(BaseModel):
    """Kubernetes API client configuration.

    Attributes:
        in_cluster: Whether to load in-cluster credentials first. When False,
            the local kubeconfig is used.
        retry_max_attempts: Max attempts per API call for retriable errors.
        retry_min_wait: Minimum wait between retries in seconds.
        retry_max_wait: Maximum wait between retries in seconds.
        circuit_breaker_threshold: Failures before circuit breaker opens.
        circuit_breaker_timeout: Seconds before circuit breaker recovery.
        watch_timeout_seconds: Server-side timeout of a single watch request.
            The stream is re-listed and re-watched when it expires.
    """

    in_cluster: bool = False
    retry_max_attempts: int = 3
    retry_min_wait: float = 0.5
    retry_max_wait: float = 10.0
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout: int = 30
    watch_timeout_seconds: int = 300

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "KubernetesConfig":
        """Create KubernetesConfig from environment variables."""
        return cls(
            in_cluster=_is_in_cluster(),
            retry_max_attempts=int(os.getenv("K8S_RETRY_MAX_ATTEMPTS", "3")),
            retry_min_wait=float(os.getenv("K8S_RETRY_MIN_WAIT", "0.5")),
            retry_max_wait=float(os.getenv("K8S_RETRY_MAX_WAIT", "10.0")),
            circuit_breaker_threshold=int(os.getenv("K8S_CIRCUIT_BREAKER_THRESHOLD", "5")),
            circuit_breaker_timeout=int(os.getenv("K8S_CIRCUIT_BREAKER_TIMEOUT", "30")),
            watch_timeout_seconds=int(os.getenv("K8S_WATCH_TIMEOUT_SECONDS", "300")),
        )


class ReconcilerConfig(BaseModel):
    """Runtime tuning of the reconciliation pipelines.

    Attributes:
        watch_restart_min_wait: Initial backoff before re-subscribing a failed
            watch, in seconds.
        watch_restart_max_wait: Upper bound of that backoff, in seconds.
        dedup_cache_size: Max (kind, namespace, name) keys tracked by each
            event deduplicator.
        stream_class_cache_size: Max StreamClass entries in the lookup cache.
        overflow_restart_delay: Seconds before a kind whose buffer overflowed
            gets a fresh subscription.
        shutdown_timeout: Seconds to wait for pipelines to finish their
            in-flight command on shutdown.
    """

    watch_restart_min_wait: float = 10.0
    watch_restart_max_wait: float = 180.0
    dedup_cache_size: int = Field(default=10000, gt=0)
    stream_class_cache_size: int = Field(default=256, gt=0)
    overflow_restart_delay: float = 10.0
    shutdown_timeout: float = 30.0

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "ReconcilerConfig":
        """Create ReconcilerConfig from environment variables."""
        return cls(
            watch_restart_min_wait=float(os.getenv("WATCH_RESTART_MIN_WAIT", "10.0")),
            watch_restart_max_wait=float(os.getenv("WATCH_RESTART_MAX_WAIT", "180.0")),
            dedup_cache_size=int(os.getenv("DEDUP_CACHE_SIZE", "10000")),
            stream_class_cache_size=int(os.getenv("STREAM_CLASS_CACHE_SIZE", "256")),
            overflow_restart_delay=float(os.getenv("OVERFLOW_RESTART_DELAY", "10.0")),
            shutdown_timeout=float(os.getenv("SHUTDOWN_TIMEOUT", "30.0")),
        )


class ApiConfig(BaseModel):
    """Bind address of the probe and metrics HTTP server."""

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "ApiConfig":
        return cls(
            host=os.getenv("API_HOST", "0.0.0.0"),  # noqa: S104
            port=int(os.getenv("API_PORT", "8080")),
        )


class Settings(BaseModel):
    """Immutable runtime configuration for the operator.

    All fields are loaded from environment variables via `get_settings()`.
    The class is frozen to prevent accidental mutation after initialization.

    Attributes:
        stream_class: StreamClass watch configuration.
        streaming_job: Streaming job watch configuration.
        job_template: Job template CRD coordinates.
        kubernetes: API client resilience settings.
        reconciler: Pipeline tuning.
        api: HTTP server bind address.
        k8s_namespace: Namespace the operator runs in.
    """

    stream_class: StreamClassOperatorConfig
    streaming_job: StreamingJobOperatorConfig
    job_template: JobTemplateConfig
    kubernetes: KubernetesConfig
    reconciler: ReconcilerConfig
    api: ApiConfig
    k8s_namespace: str

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls, namespace: str | None = None) -> "Settings":
        """Create Settings from environment variables.

        Args:
            namespace: Operator namespace. If None, uses K8S_NAMESPACE
                env var or defaults to "arcane".

        Returns:
            Configured Settings instance.
        """
        ns = os.getenv("K8S_NAMESPACE", "arcane") if namespace is None else namespace

        return cls(
            stream_class=StreamClassOperatorConfig.from_env(namespace=ns),
            streaming_job=StreamingJobOperatorConfig.from_env(namespace=ns),
            job_template=JobTemplateConfig.from_env(),
            kubernetes=KubernetesConfig.from_env(),
            reconciler=ReconcilerConfig.from_env(),
            api=ApiConfig.from_env(),
            k8s_namespace=ns,
        )


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Load and return application settings (cached per process).

    Returns:
        A frozen `Settings` instance with all configuration values.

    Note:
        Settings are loaded once per process. Restart the operator to pick
        up new values.
    """
    return Settings.from_env()

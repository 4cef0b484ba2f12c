# SPDX-License-Identifier: Apache-2.0

"""
Persistent store for the repository's collections.

Tables are stored as JSON blobs under a namespaced key. Reads never fail
the caller: missing or corrupt data yields the caller's default. Writes
are retried with exponential backoff and report success as a boolean.
"""

import json
import logging
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from opentelemetry import trace

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

USERS_TABLE = "users"
REQUESTS_TABLE = "requests"
HISTORY_TABLE = "history"
SESSION_TABLE = "session"

CORRUPT_SUFFIX = "corrupt"


def backup_table(table: str) -> str:
    """Table holding the last unreadable contents of `table`."""
    return f"{table}:{CORRUPT_SUFFIX}"


class PersistenceReadFailure(Exception):
    """Stored data for a table could not be read or decoded."""
    
    def __init__(self, table: str, cause: Exception):
        super().__init__(f"Failed to load table '{table}': {cause}")
        self.table = table
        self.cause = cause


class PersistenceWriteFailure(Exception):
    """A table could not be durably saved."""
    
    def __init__(self, table: str, cause: Exception, attempts: int):
        super().__init__(f"Failed to save table '{table}' after {attempts} attempt(s): {cause}")
        self.table = table
        self.cause = cause
        self.attempts = attempts


@dataclass
class StoreConfig:
    """Store backend configuration."""
    backend: str = "file"
    data_dir: str = "./data"
    redis_url: str = "redis://localhost:6379"
    key_prefix: str = "cbc"
    max_retries: int = 3
    retry_delay: float = 0.05


class PersistentStore(ABC):
    """
    Key/value blob storage keyed by logical table name.
    
    Subclasses implement the raw `_read`/`_write`/`_remove` primitives;
    JSON encoding, failure recovery and retries live here.
    """
    
    backend_name = "abstract"
    
    def __init__(self, key_prefix: str = "cbc", max_retries: int = 3, retry_delay: float = 0.05):
        self.key_prefix = key_prefix
        self.max_retries = max_retries
        self.retry_delay = retry_delay
    
    def key(self, table: str) -> str:
        return f"{self.key_prefix}:{table}"
    
    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        """Return the raw blob for a key, or None if absent."""
    
    @abstractmethod
    def _write(self, key: str, data: str) -> None:
        """Store a raw blob, raising on failure."""
    
    @abstractmethod
    def _remove(self, key: str) -> None:
        """Remove a key, raising on failure. Absent keys are not an error."""
    
    def is_available(self) -> bool:
        return True
    
    def load(self, table: str, default: Any) -> Any:
        """
        Load a table.
        
        Args:
            table: Logical table name
            default: Value returned when nothing usable is stored
            
        Returns:
            Decoded JSON value, or `default` on absence or failure
        """
        with tracer.start_as_current_span("store.load") as span:
            span.set_attributes({
                "store.backend": self.backend_name,
                "store.table": table
            })
            
            raw = None
            try:
                raw = self._read(self.key(table))
                if raw is None:
                    span.set_attribute("store.result", "not_found")
                    return default
                value = json.loads(raw)
                span.set_attribute("store.result", "success")
                return value
            
            except Exception as e:
                failure = PersistenceReadFailure(table, e)
                span.set_attribute("store.result", "error")
                span.record_exception(failure)
                logger.warning(
                    str(failure),
                    extra={"error_type": "persistence-read-failure", "table": table}
                )
                if raw is not None:
                    self.preserve(table, raw)
                return default
    
    def save(self, table: str, value: Any) -> bool:
        """
        Save a table with bounded retries.
        
        Args:
            table: Logical table name
            value: JSON-serializable value
            
        Returns:
            True if the value was stored, False otherwise
        """
        with tracer.start_as_current_span("store.save") as span:
            span.set_attributes({
                "store.backend": self.backend_name,
                "store.table": table
            })
            
            try:
                data = json.dumps(value)
            except (TypeError, ValueError) as e:
                return self._report_write_failure(span, PersistenceWriteFailure(table, e, 0))
            
            last_error: Optional[Exception] = None
            for attempt in range(self.max_retries + 1):
                try:
                    self._write(self.key(table), data)
                    span.set_attributes({
                        "store.result": "success",
                        "store.retry_count": attempt
                    })
                    return True
                except Exception as e:
                    last_error = e
                    if attempt < self.max_retries:
                        delay = self.retry_delay * (2 ** attempt)
                        logger.debug(
                            "Store write failed, retrying",
                            extra={"table": table, "attempt": attempt + 1, "retry_delay": delay}
                        )
                        time.sleep(delay)
            
            return self._report_write_failure(
                span, PersistenceWriteFailure(table, last_error, self.max_retries + 1)
            )
    
    def preserve(self, table: str, raw: str) -> bool:
        """
        Copy unreadable table contents aside so a later save cannot lose them.
        
        Returns:
            True if the copy was written
        """
        try:
            self._write(self.key(backup_table(table)), raw)
        except Exception as e:
            logger.error(f"Failed to preserve corrupt table '{table}': {e}")
            return False
        
        logger.warning(
            "Corrupt table contents preserved",
            extra={"table": table, "backup_key": self.key(backup_table(table))}
        )
        return True
    
    def delete(self, table: str) -> bool:
        """Remove a table. Returns False if the backend failed."""
        with tracer.start_as_current_span("store.delete") as span:
            span.set_attributes({
                "store.backend": self.backend_name,
                "store.table": table
            })
            try:
                self._remove(self.key(table))
                span.set_attribute("store.result", "success")
                return True
            except Exception as e:
                span.set_attribute("store.result", "error")
                logger.warning(f"Failed to delete table '{table}': {e}")
                return False
    
    def _report_write_failure(self, span, failure: PersistenceWriteFailure) -> bool:
        span.set_attribute("store.result", "error")
        span.record_exception(failure)
        logger.warning(
            str(failure),
            extra={"error_type": "persistence-write-failure", "table": failure.table}
        )
        return False


class MemoryStore(PersistentStore):
    """Process-local store backed by a dict."""
    
    backend_name = "memory"
    
    def __init__(self, data: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(**kwargs)
        self.data: Dict[str, str] = dict(data or {})
        self._lock = threading.Lock()
    
    def _read(self, key: str) -> Optional[str]:
        with self._lock:
            return self.data.get(key)
    
    def _write(self, key: str, data: str) -> None:
        with self._lock:
            self.data[key] = data
    
    def _remove(self, key: str) -> None:
        with self._lock:
            self.data.pop(key, None)


class FileStore(PersistentStore):
    """One JSON file per table inside a data directory."""
    
    backend_name = "file"
    
    def __init__(self, data_dir: str, **kwargs):
        super().__init__(**kwargs)
        self.data_dir = data_dir
        os.makedirs(self.data_dir, exist_ok=True)
    
    def path_for(self, key: str) -> str:
        return os.path.join(self.data_dir, key.replace(":", "_") + ".json")
    
    def is_available(self) -> bool:
        return os.path.isdir(self.data_dir) and os.access(self.data_dir, os.W_OK)
    
    def _read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    
    def _write(self, key: str, data: str) -> None:
        # Write to a temp file in the same directory, then swap it in
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp_path, self.path_for(key))
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
    
    def _remove(self, key: str) -> None:
        path = self.path_for(key)
        if os.path.exists(path):
            os.remove(path)


def load_store_config() -> StoreConfig:
    """Read store configuration from the environment."""
    return StoreConfig(
        backend=os.getenv("CBC_STORE_BACKEND", "file").lower(),
        data_dir=os.getenv("CBC_DATA_DIR", "./data"),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
        key_prefix=os.getenv("CBC_KEY_PREFIX", "cbc"),
        max_retries=int(os.getenv("CBC_STORE_MAX_RETRIES", "3")),
        retry_delay=float(os.getenv("CBC_STORE_RETRY_DELAY", "0.05"))
    )


def create_store(config: Optional[StoreConfig] = None) -> PersistentStore:
    """
    Factory function to create the configured store backend.
    
    Args:
        config: Store configuration (read from the environment if omitted)
        
    Returns:
        PersistentStore instance
    """
    config = config or load_store_config()
    options = {
        "key_prefix": config.key_prefix,
        "max_retries": config.max_retries,
        "retry_delay": config.retry_delay
    }
    
    if config.backend == "memory":
        store = MemoryStore(**options)
    elif config.backend == "redis":
        from services.redis_store import RedisStore
        store = RedisStore(config.redis_url, **options)
    elif config.backend == "file":
        store = FileStore(config.data_dir, **options)
    else:
        raise ValueError(f"Unknown store backend: {config.backend}")
    
    logger.info(f"Persistent store initialized ({store.backend_name})")
    return store

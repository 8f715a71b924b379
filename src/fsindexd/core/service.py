import json
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from filelock import FileLock

from fsindexd.core.facade import SearchFacade
from fsindexd.core.logging_utils import get_logger
from fsindexd.core.settings import Settings, settings

logger = get_logger("fsindexd.service")


class ServiceRegistry:
    """
    Process-unique service names kept in a JSON file.

    Layout: {"version": "1", "services": {name: {pid, object_path, ts}}}.
    Entries whose process is gone are pruned on every update.
    """

    VERSION = "1"

    def __init__(self, path: Optional[str] = None, settings_obj: Optional[Settings] = None):
        s = settings_obj or settings
        self.path = Path(path or s.registry_path)
        self._lock: Optional[FileLock] = None

    def _ensure_lock(self) -> FileLock:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self._lock is None:
            self._lock = FileLock(str(self.path.with_suffix(".json.lock")), timeout=10)
        return self._lock

    def _empty(self) -> Dict[str, Any]:
        return {"version": self.VERSION, "services": {}}

    def _load_unlocked(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            return self._empty()
        except (OSError, ValueError) as e:
            logger.warning("registry_unreadable", path=str(self.path), error=str(e))
            return self._empty()
        if not isinstance(data, dict) or not isinstance(data.get("services"), dict):
            return self._empty()
        return data

    def _atomic_write(self, data: Dict[str, Any]) -> None:
        tmp_path = self.path.parent / f"{self.path.name}.tmp.{os.getpid()}.{int(time.time() * 1000)}"
        try:
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except Exception:
            if tmp_path.exists():
                tmp_path.unlink()
            raise

    def _update(self, updater: Callable[[Dict[str, Any]], Any]) -> Any:
        with self._ensure_lock():
            data = self._load_unlocked()
            result = updater(data)
            self._atomic_write(data)
            return result

    def _is_process_alive(self, pid: Optional[int]) -> bool:
        if not pid:
            return False
        try:
            os.kill(int(pid), 0)
            return True
        except (OSError, PermissionError):
            return False

    def _prune_dead_locked(self, data: Dict[str, Any]) -> None:
        services = data.get("services", {})
        dead = [name for name, info in services.items() if not self._is_process_alive(info.get("pid"))]
        for name in dead:
            services.pop(name, None)

    def owner(self, name: str) -> Optional[Dict[str, Any]]:
        with self._ensure_lock():
            info = self._load_unlocked()["services"].get(name)
        if info and self._is_process_alive(info.get("pid")):
            return info
        return None

    def is_registered(self, name: str) -> bool:
        return self.owner(name) is not None

    def register(self, name: str, object_path: str, pid: Optional[int] = None) -> bool:
        """Claim name for pid. Returns False, without raising, when another live process holds it."""
        pid = pid or os.getpid()

        def _upd(data: Dict[str, Any]) -> bool:
            self._prune_dead_locked(data)
            services = data["services"]
            current = services.get(name)
            if current and int(current.get("pid") or 0) != pid:
                return False
            services[name] = {"pid": pid, "object_path": object_path, "ts": time.time()}
            return True

        return bool(self._update(_upd))

    def unregister(self, name: str, pid: Optional[int] = None) -> None:
        pid = pid or os.getpid()

        def _upd(data: Dict[str, Any]) -> None:
            services = data["services"]
            current = services.get(name)
            if current and int(current.get("pid") or 0) == pid:
                services.pop(name, None)

        self._update(_upd)


class ServiceEndpoint:
    """Exposes a SearchFacade to other processes under one well-known name."""

    def __init__(self, facade: SearchFacade, registry: ServiceRegistry,
                 name: Optional[str] = None, object_path: Optional[str] = None,
                 settings_obj: Optional[Settings] = None):
        s = settings_obj or settings
        self.facade = facade
        self.registry = registry
        self.name = name or s.SERVICE_NAME
        self.object_path = object_path or s.SERVICE_OBJECT_PATH
        self.published = False
        self._methods: Dict[str, Callable[..., Any]] = {
            "search": facade.search,
            "add": facade.add_path,
            "remove": facade.remove_path,
            "exists": facade.has_document,
        }

    def publish(self) -> bool:
        if self.registry.is_registered(self.name):
            logger.info("service_registration_skipped", name=self.name)
            return False
        self.published = self.registry.register(self.name, self.object_path)
        if self.published:
            logger.info("service_registered", name=self.name, object_path=self.object_path)
        else:
            logger.info("service_registration_skipped", name=self.name)
        return self.published

    def unpublish(self) -> None:
        if self.published:
            self.registry.unregister(self.name)
            self.published = False

    def handle(self, method: str, **params: Any) -> Any:
        fn = self._methods.get(method)
        if fn is None:
            raise KeyError(f"unknown method: {method}")
        return fn(**params)

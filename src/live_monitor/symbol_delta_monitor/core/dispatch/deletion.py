import json
import os
from abc import ABC, abstractmethod
from typing import Dict

import requests

from live_monitor.symbol_delta_monitor.core.utils.errors import DeletionError
from live_monitor.symbol_delta_monitor.core.utils.logger import get_logger

logger = get_logger(__name__)


class DeletionNotifier(ABC):
    @abstractmethod
    def notify(self, origin_id: str) -> None:
        """ask for the originating blob to be deleted"""
        pass


class HttpDeletionNotifier(DeletionNotifier):
    """POSTs {"blobname": ...} to the delete-blob endpoint behind APIM"""

    def __init__(self, url: str, api_key: str = None, timeout: float = 10.0):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout

    def build_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
        }
        if self.api_key:
            headers["Ocp-Apim-Subscription-Key"] = self.api_key
        return headers

    @staticmethod
    def build_payload(origin_id: str) -> Dict[str, str]:
        return {"blobname": origin_id}

    def notify(self, origin_id: str) -> None:
        try:
            response = requests.post(
                self.url,
                data=json.dumps(self.build_payload(origin_id)),
                headers=self.build_headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise DeletionError(f"Delete request for {origin_id} failed: {e}") from e

        logger.info(f"Delete endpoint response: {response.text}")


class LocalFileDeletionNotifier(DeletionNotifier):
    """Removes the replayed file itself instead of calling an endpoint"""

    def __init__(self, base_dir: str):
        self.base_dir = base_dir

    def notify(self, origin_id: str) -> None:
        path = os.path.join(self.base_dir, origin_id)
        try:
            os.remove(path)
        except OSError as e:
            raise DeletionError(f"Could not delete {path}: {e}") from e

        logger.info(f"Deleted local blob file: {path}")


class NullDeletionNotifier(DeletionNotifier):
    """Used when no delete endpoint is configured"""

    def notify(self, origin_id: str) -> None:
        logger.debug(f"No delete endpoint configured, keeping {origin_id}")

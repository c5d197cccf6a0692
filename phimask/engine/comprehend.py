# phimask/engine/comprehend.py

"""AWS Comprehend Medical detection backend."""

import logging
from typing import Any, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from phimask.core.definitions import DETECTOR_MAX_CHARS
from phimask.core.domain import Entity
from phimask.core.exceptions import DetectionUnavailable, InvalidInput

logger = logging.getLogger(__name__)


class ComprehendMedicalDetector:
    """Detects PHI with the Comprehend Medical ``DetectPHI`` operation.

    The service caps input at 20,000 characters; callers are expected to
    chunk longer text before calling :meth:`detect`.
    """

    def __init__(
        self,
        region_name: str = "us-east-1",
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        max_chars: int = DETECTOR_MAX_CHARS,
        timeout: Optional[float] = None,
        client: Optional[Any] = None,
    ) -> None:
        """Initialize the detector.

        Args:
            region_name: AWS region hosting Comprehend Medical
            aws_access_key_id: Static credentials; falls back to the boto3 chain
            aws_secret_access_key: Static credentials; falls back to the boto3 chain
            max_chars: Largest text the service accepts
            timeout: Socket read timeout in seconds
            client: Pre-built client (used by tests)
        """
        self.max_chars = max_chars

        if client is not None:
            self._client = client
            return

        config = Config(retries={"max_attempts": 3, "mode": "standard"})
        if timeout is not None:
            config = config.merge(Config(connect_timeout=timeout, read_timeout=timeout))

        self._client = boto3.client(
            "comprehendmedical",
            region_name=region_name,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
            config=config,
        )
        logger.info("Comprehend Medical client created", extra={"region": region_name})

    def detect(self, chunk_text: str) -> List[Entity]:
        """Returns PHI entities for ``chunk_text``.

        Raises:
            InvalidInput: If the text exceeds the service limit
            DetectionUnavailable: If the service call fails for any reason
        """
        if len(chunk_text) > self.max_chars:
            raise InvalidInput(
                f"Text of length {len(chunk_text)} exceeds detector limit {self.max_chars}"
            )

        try:
            response = self._client.detect_phi(Text=chunk_text)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(
                "Comprehend Medical rejected request",
                extra={"error_code": code, "text_length": len(chunk_text)},
            )
            raise DetectionUnavailable(f"Comprehend Medical error: {code}") from e
        except BotoCoreError as e:
            logger.error(
                "Comprehend Medical unreachable",
                exc_info=True,
                extra={"text_length": len(chunk_text)},
            )
            raise DetectionUnavailable(f"Comprehend Medical unavailable: {e}") from e

        entities = [Entity.from_dict(raw) for raw in response.get("Entities") or []]

        logger.debug(
            "Comprehend Medical detection complete",
            extra={"entity_count": len(entities), "text_length": len(chunk_text)},
        )
        return entities

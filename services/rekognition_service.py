import logging
from typing import List

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from services.analysis import (
    DetectedLabel,
    FaceAnalysis,
    ProviderError,
    labels_from_rekognition,
)


logger = logging.getLogger(__name__)

LABEL_MIN_CONFIDENCE = 80.0
MAX_LABELS = 10


def create_client(region_name=None):
    return boto3.client("rekognition", region_name=region_name)


class RekognitionFaceProvider:
    """Face attributes (box, landmarks, pose, eyewear, smile) via DetectFaces."""

    def __init__(self, client=None, region_name=None):
        self.client = client or create_client(region_name)

    def analyze(self, image: bytes) -> FaceAnalysis:
        try:
            response = self.client.detect_faces(
                Image={"Bytes": image},
                Attributes=["ALL"],
            )
            analysis = FaceAnalysis.from_rekognition(response)
        except (BotoCoreError, ClientError) as e:
            raise ProviderError(f"DetectFaces failed: {e}") from e
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Malformed DetectFaces response: {e!r}") from e

        logger.debug("DetectFaces: %d face(s)", analysis.face_count)
        return analysis


class RekognitionLabelProvider:
    """Object and scene labels via DetectLabels."""

    def __init__(
        self,
        client=None,
        region_name=None,
        min_confidence: float = LABEL_MIN_CONFIDENCE,
        max_labels: int = MAX_LABELS,
    ):
        self.client = client or create_client(region_name)
        self.min_confidence = min_confidence
        self.max_labels = max_labels

    def detect(self, image: bytes) -> List[DetectedLabel]:
        try:
            response = self.client.detect_labels(
                Image={"Bytes": image},
                MaxLabels=self.max_labels,
                MinConfidence=self.min_confidence,
            )
            labels = labels_from_rekognition(response)
        except (BotoCoreError, ClientError) as e:
            raise ProviderError(f"DetectLabels failed: {e}") from e
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"Malformed DetectLabels response: {e!r}") from e

        logger.debug("DetectLabels: %s", [label.name for label in labels])
        return labels

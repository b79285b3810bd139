import boto3
import pytest
from botocore.stub import Stubber

from services.analysis import CHIN_BOTTOM_INDEX, ProviderError
from services.rekognition_service import RekognitionFaceProvider, RekognitionLabelProvider

LANDMARK_TYPES = [
    "eyeLeft", "eyeRight", "mouthLeft", "mouthRight", "nose",
    "leftEyeBrowLeft", "leftEyeBrowRight", "leftEyeBrowUp",
    "rightEyeBrowLeft", "rightEyeBrowRight", "rightEyeBrowUp",
    "leftEyeLeft", "leftEyeRight", "leftEyeUp", "leftEyeDown",
    "rightEyeLeft", "rightEyeRight", "rightEyeUp", "rightEyeDown",
    "noseLeft", "noseRight", "mouthUp", "mouthDown", "leftPupil", "rightPupil",
    "upperJawlineLeft", "midJawlineLeft", "chinBottom", "midJawlineRight", "upperJawlineRight",
]

IMAGE = b"\xff\xd8jpeg-bytes"


def face_detail(pitch=3.5, yaw=-12.0):
    return {
        "BoundingBox": {"Width": 0.3, "Height": 0.6, "Left": 0.35, "Top": 0.2},
        "AgeRange": {"Low": 24, "High": 32},
        "Smile": {"Value": True, "Confidence": 97.0},
        "Eyeglasses": {"Value": False, "Confidence": 99.0},
        "Sunglasses": {"Value": False, "Confidence": 99.0},
        "Landmarks": [
            {"Type": t, "X": 0.4 + i * 0.001, "Y": 0.5} for i, t in enumerate(LANDMARK_TYPES)
        ],
        "Pose": {"Roll": 1.0, "Yaw": yaw, "Pitch": pitch},
        "Confidence": 99.98,
    }


@pytest.fixture
def client():
    return boto3.client(
        "rekognition",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


class TestFaceProvider:

    def test_parses_detect_faces(self, client):
        provider = RekognitionFaceProvider(client=client)
        with Stubber(client) as stub:
            stub.add_response(
                "detect_faces",
                {"FaceDetails": [face_detail()]},
                {"Image": {"Bytes": IMAGE}, "Attributes": ["ALL"]},
            )
            analysis = provider.analyze(IMAGE)
            stub.assert_no_pending_responses()

        assert analysis.face_count == 1
        assert analysis.bounding_box.left == pytest.approx(0.35)
        assert analysis.pose.pitch == pytest.approx(3.5)
        assert analysis.pose.yaw == pytest.approx(-12.0)
        assert analysis.chin.type == "chinBottom"
        assert analysis.landmarks[CHIN_BOTTOM_INDEX].type == "chinBottom"
        assert analysis.eye_left.type == "eyeLeft"
        assert analysis.summary()["age_range"] == {"low": 24, "high": 32}
        assert analysis.summary()["smile"] is True

    def test_counts_every_face(self, client):
        provider = RekognitionFaceProvider(client=client)
        with Stubber(client) as stub:
            stub.add_response("detect_faces", {"FaceDetails": [face_detail(), face_detail()]})
            assert provider.analyze(IMAGE).face_count == 2

    def test_no_face(self, client):
        provider = RekognitionFaceProvider(client=client)
        with Stubber(client) as stub:
            stub.add_response("detect_faces", {"FaceDetails": []})
            analysis = provider.analyze(IMAGE)

        assert analysis.face_count == 0
        assert analysis.pose is None
        assert analysis.bounding_box is None
        assert analysis.chin is None
        assert not analysis.degraded

    def test_service_error_becomes_provider_error(self, client):
        provider = RekognitionFaceProvider(client=client)
        with Stubber(client) as stub:
            stub.add_client_error("detect_faces", service_error_code="InvalidImageFormatException")
            with pytest.raises(ProviderError):
                provider.analyze(IMAGE)


class TestLabelProvider:

    def test_parses_detect_labels(self, client):
        provider = RekognitionLabelProvider(client=client, min_confidence=75.0, max_labels=5)
        with Stubber(client) as stub:
            stub.add_response(
                "detect_labels",
                {"Labels": [
                    {"Name": "Person", "Confidence": 99.2},
                    {"Name": "Tablet Computer", "Confidence": 88.0},
                ]},
                {"Image": {"Bytes": IMAGE}, "MaxLabels": 5, "MinConfidence": 75.0},
            )
            detected = provider.detect(IMAGE)

        assert [label.name for label in detected] == ["Person", "Tablet Computer"]
        assert detected[1].confidence == pytest.approx(88.0)

    def test_service_error_becomes_provider_error(self, client):
        provider = RekognitionLabelProvider(client=client)
        with Stubber(client) as stub:
            stub.add_client_error("detect_labels", service_error_code="ThrottlingException")
            with pytest.raises(ProviderError):
                provider.detect(IMAGE)


class CannedClient:
    """Returns fixed payloads without going through botocore's shape checks."""

    def __init__(self, faces=None, labels=None):
        self.faces = faces
        self.labels = labels

    def detect_faces(self, **kwargs):
        return self.faces

    def detect_labels(self, **kwargs):
        return self.labels


class TestMalformedResponses:

    @pytest.mark.parametrize("detail", [
        {"BoundingBox": {"Left": None, "Top": 0.2, "Width": 0.3, "Height": 0.6}},
        {"Landmarks": [{"Type": "eyeLeft", "X": "left", "Y": 0.4}]},
        {"Pose": {"Pitch": [], "Yaw": 1.0}},
    ])
    def test_bad_face_detail_becomes_provider_error(self, detail):
        provider = RekognitionFaceProvider(client=CannedClient(faces={"FaceDetails": [detail]}))
        with pytest.raises(ProviderError):
            provider.analyze(IMAGE)

    def test_non_dict_face_detail(self):
        provider = RekognitionFaceProvider(client=CannedClient(faces={"FaceDetails": [None]}))
        with pytest.raises(ProviderError):
            provider.analyze(IMAGE)

    def test_bad_label_becomes_provider_error(self):
        client = CannedClient(labels={"Labels": [{"Name": "Phone", "Confidence": "high"}]})
        with pytest.raises(ProviderError):
            RekognitionLabelProvider(client=client).detect(IMAGE)

from services.analysis import FaceAnalysis, labels_from_rekognition


class TestFaceAnalysisParsing:

    def test_missing_face_details(self):
        assert FaceAnalysis.from_rekognition({}).face_count == 0

    def test_partial_face_detail(self):
        analysis = FaceAnalysis.from_rekognition({"FaceDetails": [{"Confidence": 80.0}]})
        assert analysis.face_count == 1
        assert analysis.bounding_box is None
        assert analysis.pose is None
        assert analysis.landmarks == []
        assert analysis.summary()["eye_left"] is None

    def test_short_landmark_list_has_no_chin(self):
        analysis = FaceAnalysis.from_rekognition({"FaceDetails": [{
            "Landmarks": [{"Type": "eyeLeft", "X": 0.4, "Y": 0.4}],
        }]})
        assert analysis.eye_left.type == "eyeLeft"
        assert analysis.chin is None

    def test_real_zero_pose_is_kept(self):
        analysis = FaceAnalysis.from_rekognition({"FaceDetails": [{
            "Pose": {"Pitch": 0.0, "Yaw": 0.0, "Roll": 0.0},
        }]})
        assert analysis.pose is not None
        assert (analysis.pose.pitch, analysis.pose.yaw) == (0.0, 0.0)

    def test_empty_analysis(self):
        analysis = FaceAnalysis.empty(degraded=True)
        assert analysis.degraded
        assert analysis.face_count == 0
        assert analysis.summary()["number_of_people"] == 0


def test_labels_skip_nameless_entries():
    detected = labels_from_rekognition({"Labels": [{"Name": "Hand", "Confidence": 90}, {"Confidence": 99}]})
    assert [label.name for label in detected] == ["Hand"]

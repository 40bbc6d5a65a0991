import pytest
import yaml

from gitopsflow.core.ci_scripts import make_commit_image_script
from gitopsflow.core.services.manifest import (
    ManifestPatchError,
    apply_image_patch,
    render_scalar,
    strategic_merge,
)

from conftest import heredoc_bodies


MANIFEST = """\
# Deployment for hello world
apiVersion: apps/v1
kind: Deployment
metadata:
  name: hello-world
  annotations:
    description: "Сервис приветствия"
    owner: 'platform team'
    runbook: https://wiki.example.com/very/long/path/that/goes/well/past/the/eighty/column/limit/of/pyyaml
spec:
  replicas: 3
  selector:
    matchLabels: {app: hello-world}
  template:
    metadata:
      labels:
        app: hello-world
    spec:
      containers:
        - name: gitops-hello-world-brigade
          image: gcr.io/x/y:v1   # pinned by CI
          ports:
            - containerPort: 8080
        - name: sidecar
          image: "gcr.io/x/proxy:v9"
"""


@pytest.fixture
def manifest_text():
    return MANIFEST


def test_rest_of_manifest_is_byte_identical(manifest_text):
    patched = apply_image_patch(manifest_text, "gitops-hello-world-brigade", "gcr.io/x/y:v2")

    assert patched == manifest_text.replace("gcr.io/x/y:v1", "gcr.io/x/y:v2")


def test_quote_style_is_kept(manifest_text):
    patched = apply_image_patch(manifest_text, "sidecar", "gcr.io/x/proxy:v10")

    assert patched == manifest_text.replace('"gcr.io/x/proxy:v9"', '"gcr.io/x/proxy:v10"')


def test_flow_style_containers():
    text = "spec: {template: {spec: {containers: [{name: web, image: 'a:1'}]}}}  # flow\n"

    assert apply_image_patch(text, "web", "a:2") == "spec: {template: {spec: {containers: [{name: web, image: 'a:2'}]}}}  # flow\n"


def test_multi_document_manifest():
    text = (
        "kind: Service\n"
        "metadata: {name: web}\n"
        "---\n"
        "kind: Deployment\n"
        "spec:\n"
        "  template:\n"
        "    spec:\n"
        "      containers:\n"
        "      - name: web\n"
        "        image: a:1\n"
    )

    assert apply_image_patch(text, "web", "a:2") == text.replace("image: a:1", "image: a:2")


def test_render_scalar_quotes_ambiguous_plain_values():
    assert render_scalar("gcr.io/x/y:v2", None) == "gcr.io/x/y:v2"
    assert render_scalar("123", None) == '"123"'
    assert render_scalar("a: b", None) == '"a: b"'
    assert render_scalar("it's", "'") == "'it''s'"


def test_fragment_patch_matches_reference_merge(manifest_text):
    script = make_commit_image_script("gcr.io/x/y:v2", "b1")
    patch = yaml.safe_load(heredoc_bodies(script)[2])

    merged = strategic_merge(yaml.safe_load(manifest_text), patch)

    assert merged == yaml.safe_load(apply_image_patch(manifest_text, "gitops-hello-world-brigade", "gcr.io/x/y:v2"))


def test_unknown_container(manifest_text):
    with pytest.raises(ManifestPatchError):
        apply_image_patch(manifest_text, "missing", "img:1")


def test_not_a_mapping():
    with pytest.raises(ManifestPatchError):
        apply_image_patch("- just\n- a list\n", "c", "img:1")


def test_strategic_merge_by_name_and_replace():
    base = {"items": [{"name": "a", "v": 1}, {"name": "b", "v": 2}], "args": ["x", "y"]}
    patch = {"items": [{"name": "b", "v": 3}, {"name": "c", "v": 4}], "args": ["z"]}

    merged = strategic_merge(base, patch)

    assert merged == {
        "items": [{"name": "a", "v": 1}, {"name": "b", "v": 3}, {"name": "c", "v": 4}],
        "args": ["z"],
    }
    assert base["items"][1]["v"] == 2


def test_container_without_image():
    text = "spec:\n  template:\n    spec:\n      containers:\n      - name: web\n"

    with pytest.raises(ManifestPatchError):
        apply_image_patch(text, "web", "a:2")

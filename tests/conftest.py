"""Shared test fixtures for kvm_deploy tests."""

import os
from pathlib import Path
from typing import Callable, List

import pytest
import yaml

from kvm_deploy.config import RunConfig, Settings
from kvm_deploy.deployer import Deployer
from kvm_deploy.fakes import FakeHostProbe, FakeHypervisor, FakeMedium


TWO_NODE_DEFINITION = {
    "cluster": {"name": "hs-lab", "domainname": "lab.local"},
    "nodes": {
        "node-a": {"hostname": "hs-dsx1", "features": ["portal", "storage_server"]},
        "node-b": {"hostname": "hs-anvil1", "ha_mode": "Standalone", "features": ["metadata"]},
    },
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer KVM_DEPLOY_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("KVM_DEPLOY_"):
            monkeypatch.delenv(key)


@pytest.fixture
def write_definition(tmp_path) -> Callable[[dict], Path]:
    """Write a cluster definition dict to installer.yaml under tmp_path."""

    def _write(data: dict, name: str = "installer.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False))
        return path

    return _write


@pytest.fixture
def definition_file(write_definition) -> Path:
    return write_definition(TWO_NODE_DEFINITION)


@pytest.fixture
def appliance_image(tmp_path) -> Path:
    image = tmp_path / "appliance.qcow2"
    image.write_bytes(b"QFI\xfb" + b"\x00" * 60)
    return image


@pytest.fixture
def work_dir(tmp_path) -> Path:
    directory = tmp_path / "deploy"
    directory.mkdir()
    return directory


@pytest.fixture
def settings(definition_file, appliance_image, work_dir) -> Settings:
    return Settings(
        installer_source=definition_file,
        appliance_image=appliance_image,
        work_dir=work_dir,
        _env_file=None,
    )


@pytest.fixture
def hypervisor() -> FakeHypervisor:
    return FakeHypervisor()


@pytest.fixture
def medium() -> FakeMedium:
    return FakeMedium(requires_privilege=True)


@pytest.fixture
def host() -> FakeHostProbe:
    return FakeHostProbe()


class PromptRecorder:
    """Prompt callable answering from a fixed reply and recording questions."""

    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.questions: List[str] = []

    def __call__(self, question: str) -> bool:
        self.questions.append(question)
        return self.answer


@pytest.fixture
def prompt() -> PromptRecorder:
    return PromptRecorder(answer=True)


@pytest.fixture
def make_deployer(settings, hypervisor, medium, host, prompt):
    """Build a Deployer around the fake collaborators."""

    def _make(run_config: RunConfig = RunConfig(), **kwargs) -> Deployer:
        return Deployer(
            kwargs.get("settings", settings),
            run_config,
            hypervisor=hypervisor,
            medium=medium,
            host=host,
            prompt=kwargs.get("prompt", prompt),
        )

    return _make

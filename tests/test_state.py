import json

import pytest

from modsync.instance import LocalModFile
from modsync.state import STATE_FILENAME, InstanceState, StateError


def test_round_trip_keeps_disabled_flag(tmp_path):
    state = InstanceState(tmp_path)
    state.set_instance_info(name="Survival", loader="Fabric", version="fabric-loader-0.16.5-1.21.1")
    state.record_files([LocalModFile("alpha.jar", 10), LocalModFile("beta.jar", 20, disabled=True)])
    state.save()

    loaded = InstanceState(tmp_path)
    loaded.load()

    assert loaded.instance_name == "Survival"
    assert loaded.loader == "fabric"
    assert loaded.version == "fabric-loader-0.16.5-1.21.1"
    assert loaded.get_mod("alpha.jar").disabled is False
    assert loaded.get_mod("beta.jar").disabled is True
    assert loaded.get_mod("beta.jar").size_bytes == 20


def test_manifest_keys_never_carry_disabled_suffix(tmp_path):
    state = InstanceState(tmp_path)
    state.record_files([LocalModFile("beta.jar", disabled=True)])
    state.save()

    data = json.loads((tmp_path / STATE_FILENAME).read_text(encoding="utf-8"))
    assert list(data["mods"]) == ["beta.jar"]
    assert data["mods"]["beta.jar"]["disabled"] is True


def test_record_files_follows_disk(tmp_path):
    state = InstanceState(tmp_path)
    state.record_files([LocalModFile("alpha.jar"), LocalModFile("beta.jar")])
    first_seen = state.get_mod("alpha.jar").first_seen

    state.record_files([LocalModFile("alpha.jar", 99, disabled=True)])

    assert state.get_mod("beta.jar") is None
    assert state.get_mod("alpha.jar").disabled is True
    assert state.get_mod("alpha.jar").size_bytes == 99
    assert state.get_mod("alpha.jar").first_seen == first_seen


def test_set_disabled_and_remove(tmp_path):
    state = InstanceState(tmp_path)
    state.set_disabled("alpha.jar", True)
    assert state.get_mod("alpha.jar").disabled is True

    state.remove_mod("alpha.jar")
    state.remove_mod("alpha.jar")
    assert state.get_mod("alpha.jar") is None


def test_load_missing(tmp_path):
    state = InstanceState(tmp_path)
    assert not state.exists()
    with pytest.raises(StateError, match="No state file"):
        state.load()


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_load_invalid(tmp_path, content):
    (tmp_path / STATE_FILENAME).write_text(content, encoding="utf-8")
    with pytest.raises(StateError, match="Invalid state file"):
        InstanceState(tmp_path).load()

import threading

from modsync.identity import (
    LOOKUP_ERROR,
    NO_CATALOG_MATCH,
    NORMALIZATION_AMBIGUOUS,
    VERSION_RESOLUTION_FAILED,
    aggregate_identities,
    identify,
)
from modsync.instance import LocalModFile
from tests.conftest import FakeCatalog, make_project, make_version

INSTALLED = "sodium-fabric-0.5.8+mc1.20.1.jar"


def test_identify_resolves_project_and_current_version(sodium_catalog):
    identity = identify(LocalModFile(INSTALLED, 4096), sodium_catalog, "fabric", "1.20.1")

    assert identity.slug == "sodium"
    assert identity.failure is None
    assert identity.resolved


def test_identify_fills_catalog_metadata():
    catalog = FakeCatalog(
        projects=[make_project("lithium", "Lithium", "gvQqBUqZ")],
        versions={"gvQqBUqZ": [make_version("L1", "lithium-0.11.2.jar", "0.11.2")]},
    )
    identity = identify(LocalModFile("lithium-0.11.2.jar", 100), catalog, "fabric", "1.20.1")

    assert identity.project_id == "gvQqBUqZ"
    assert identity.name == "Lithium"
    assert identity.author == "someone"
    assert identity.downloads == 1000
    assert identity.current_version_id == "L1"
    assert identity.current_version_number == "0.11.2"
    assert identity.size_bytes == 100


def test_ambiguous_name_keeps_local_record():
    catalog = FakeCatalog()
    identity = identify(LocalModFile("1.20.1.jar", 10, disabled=True), catalog, "fabric", "1.20.1")

    assert identity.failure == NORMALIZATION_AMBIGUOUS
    assert identity.filename == "1.20.1.jar"
    assert identity.disabled is True
    assert catalog.searches == []


def test_unmatched_mod_keeps_local_record():
    identity = identify(LocalModFile("my_custom_tweaks_2.jar"), FakeCatalog(), "fabric", "1.20.1")

    assert identity.failure == NO_CATALOG_MATCH
    assert identity.slug == "my_custom_tweaks"
    assert identity.project_id is None
    assert identity.display_name == "my_custom_tweaks_2.jar"


def test_unknown_installed_file_keeps_project_metadata():
    catalog = FakeCatalog(
        projects=[make_project("lithium", "Lithium")],
        versions={"id-lithium": [make_version("L2", "lithium-0.12.0.jar")]},
    )
    identity = identify(LocalModFile("lithium-0.11.2.jar"), catalog, "fabric", "1.20.1")

    assert identity.failure == VERSION_RESOLUTION_FAILED
    assert identity.name == "Lithium"
    assert identity.current_version_id is None
    assert not identity.resolved


def test_version_listing_error_keeps_project_metadata():
    catalog = FakeCatalog(projects=[make_project("lithium", "Lithium")])
    catalog.version_errors.add("id-lithium")

    identity = identify(LocalModFile("lithium-0.11.2.jar"), catalog, "fabric", "1.20.1")

    assert identity.failure == VERSION_RESOLUTION_FAILED
    assert identity.project_id == "id-lithium"


def test_unsupported_loader_skips_version_lookup(sodium_catalog):
    identity = identify(LocalModFile(INSTALLED), sodium_catalog, "", "1.20.1")

    assert identity.project_id == "AANobbMI"
    assert identity.current_version_id is None
    assert identity.failure is None
    assert sodium_catalog.version_queries == []


def test_aggregate_preserves_input_order(sodium_catalog):
    files = [
        LocalModFile("zzz-unknown-1.0.jar"),
        LocalModFile(INSTALLED),
        LocalModFile("1.20.1.jar"),
    ]
    identities = aggregate_identities(files, sodium_catalog, "fabric", "1.20.1", max_workers=3)

    assert [i.filename for i in identities] == [f.filename for f in files]
    assert [i.failure for i in identities] == [NO_CATALOG_MATCH, None, NORMALIZATION_AMBIGUOUS]


def test_aggregate_one_record_per_file_even_on_unexpected_error(sodium_catalog):
    def explode(query):
        if query == "broken":
            raise RuntimeError("catalog exploded")

    sodium_catalog.on_search = explode
    files = [LocalModFile("broken-1.0.jar"), LocalModFile(INSTALLED)]

    identities = aggregate_identities(files, sodium_catalog, "fabric", "1.20.1")

    assert len(identities) == 2
    assert identities[0].failure == LOOKUP_ERROR
    assert identities[0].slug == "broken"
    assert identities[1].resolved


def test_aggregate_uses_worker_threads():
    seen = set()
    lock = threading.Lock()
    catalog = FakeCatalog()

    def record(query):
        with lock:
            seen.add(threading.current_thread().name)

    catalog.on_search = record
    files = [LocalModFile(f"mod{c}-1.0.jar") for c in "abcdef"]

    identities = aggregate_identities(files, catalog, "fabric", "1.20.1", max_workers=2)

    assert len(identities) == 6
    assert threading.current_thread().name not in seen


def test_aggregate_empty():
    assert aggregate_identities([], FakeCatalog(), "fabric", "1.20.1") == []

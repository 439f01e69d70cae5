import pytest

from jirasync.core.descriptors import DeleteMode, IdentityMode
from jirasync.kinds.registry import get_handler, get_spec, iter_specs, known_kinds


def test_every_kind_loads_a_matching_handler():
    assert len(known_kinds()) == 10
    for spec in iter_specs():
        handler = get_handler(spec.key)
        assert handler.kind == spec.key
        assert handler.descriptor.kind == spec.key


def test_descriptors_carry_kind_policy():
    assert get_handler("automation_rule").descriptor.delete_mode is DeleteMode.DISABLE
    assert get_handler("group").descriptor.delete_mode is DeleteMode.DELETE_AND_RECREATE_ON_RENAME
    assert get_handler("group_membership").descriptor.identity_mode is IdentityMode.COMPOSITE_KEY
    assert "search_key" in get_handler("custom_field").descriptor.immutable_fields


def test_unknown_kind():
    with pytest.raises(ValueError) as ei:
        get_spec("dashboard")
    assert "known:" in str(ei.value)

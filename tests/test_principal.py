import pytest
from icrepl.icrepl_principal import Principal


def test_well_known_principals():
    assert Principal.management_canister().to_text() == "aaaaa-aa"
    assert Principal.anonymous().to_text() == "2vxsx-fae"
    assert Principal.from_text("2vxsx-fae").is_anonymous()
    assert Principal.from_text("aaaaa-aa").raw == b""


def test_canister_id_round_trips_through_text():
    text = "ryjl3-tyaaa-aaaaa-aaaba-cai"
    p = Principal.from_text(text)
    assert str(p) == text
    assert p.raw == bytes([0, 0, 0, 0, 0, 0, 0, 2, 1, 1])


def test_from_text_accepts_uppercase():
    assert Principal.from_text("RYJL3-TYAAA-AAAAA-AAABA-CAI") == Principal.from_text("ryjl3-tyaaa-aaaaa-aaaba-cai")


@pytest.mark.parametrize("text", [
    "",
    "aaaaa-ab",                      # checksum mismatch
    "ryjl3tyaaaaaaaaaaabacai",       # not grouped
    "not a principal!",
])
def test_from_text_rejects_invalid(text):
    with pytest.raises(ValueError):
        Principal.from_text(text)


def test_self_authenticating_principal_has_tag_and_length():
    p = Principal.self_authenticating(b"some der encoded public key")
    assert len(p.raw) == 29
    assert p.raw[-1] == 0x02
    assert Principal.from_text(p.to_text()) == p


def test_principal_length_limit():
    with pytest.raises(ValueError):
        Principal(bytes(30))

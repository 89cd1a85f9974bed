from community_events.passwords import hash_password, verify_password


def test_hash_is_bcrypt_and_salted():
    first = hash_password("s3cret")
    second = hash_password("s3cret")
    assert first.startswith("$2b$")
    assert first != second
    assert "s3cret" not in first


def test_verify_password():
    stored = hash_password("s3cret")
    assert verify_password("s3cret", stored)
    assert not verify_password("wrong", stored)


def test_malformed_hash_never_matches():
    assert not verify_password("s3cret", "garbage")
    assert not verify_password("s3cret", "pbkdf2_sha256$200000$abcd$ef01")

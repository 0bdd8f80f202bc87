import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from pgkeystore.errors import KeyDeserializationError, KeySerializationError
from pgkeystore.keycodec import (
    KEY_TYPE_ECDSA,
    KEY_TYPE_ED25519,
    KEY_TYPE_RSA,
    KEY_TYPE_SECP256K1,
    decode_envelope,
    encode_envelope,
    generate_key,
    key_equals,
    marshal_private_key,
    unmarshal_private_key,
)


@pytest.fixture(scope="module")
def rsa_key():
    # RSA generation is slow; share one key across the module
    return generate_key("rsa")


# ============================================================
# Protobuf envelope
# ============================================================

class TestEnvelope:
    def test_layout(self):
        buf = encode_envelope(KEY_TYPE_ED25519, b"\x01\x02")
        # field 1 varint = 1, field 2 bytes len 2
        assert buf == b"\x08\x01\x12\x02\x01\x02"
        assert decode_envelope(buf) == (KEY_TYPE_ED25519, b"\x01\x02")

    def test_rsa_type_zero_is_encoded(self):
        buf = encode_envelope(KEY_TYPE_RSA, b"")
        assert buf == b"\x08\x00\x12\x00"
        assert decode_envelope(buf) == (KEY_TYPE_RSA, b"")

    def test_unknown_fields_are_skipped(self):
        # field 3 varint, field 4 length-delimited
        extra = b"\x18\x05" + b"\x22\x01z"
        buf = extra + encode_envelope(KEY_TYPE_ECDSA, b"abc")
        assert decode_envelope(buf) == (KEY_TYPE_ECDSA, b"abc")

    def test_missing_type_raises(self):
        with pytest.raises(KeyDeserializationError, match="Type"):
            decode_envelope(b"\x12\x01a")

    def test_missing_data_raises(self):
        with pytest.raises(KeyDeserializationError, match="Data"):
            decode_envelope(b"\x08\x01")

    def test_truncated_buffer_raises(self):
        buf = encode_envelope(KEY_TYPE_ED25519, b"x" * 64)
        with pytest.raises(KeyDeserializationError):
            decode_envelope(buf[:-3])

    def test_key_type_beyond_uint32_rejected(self):
        with pytest.raises(KeySerializationError, match="uint32"):
            encode_envelope(2 ** 32, b"")

    def test_varint_beyond_uint32_rejected(self):
        # 5-byte varint encoding 2**32
        with pytest.raises(KeyDeserializationError, match="uint32"):
            decode_envelope(b"\x08\x80\x80\x80\x80\x10\x12\x00")

    def test_deserialization_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode_envelope(b"\xff")


# ============================================================
# Key marshal / unmarshal
# ============================================================

class TestKeyCodec:
    def test_ed25519_roundtrip(self):
        key = generate_key("ed25519")
        buf = marshal_private_key(key)
        assert decode_envelope(buf)[0] == KEY_TYPE_ED25519
        assert len(decode_envelope(buf)[1]) == 64
        out = unmarshal_private_key(buf)
        assert isinstance(out, ed25519.Ed25519PrivateKey)
        assert key_equals(key, out)

    def test_ed25519_legacy_96_bytes(self):
        key = generate_key("ed25519")
        _, data = decode_envelope(marshal_private_key(key))
        legacy = encode_envelope(KEY_TYPE_ED25519, data + data[32:])
        assert key_equals(unmarshal_private_key(legacy), key)

    def test_ed25519_mismatched_public_key(self):
        key = generate_key("ed25519")
        _, data = decode_envelope(marshal_private_key(key))
        other = generate_key("ed25519")
        _, other_data = decode_envelope(marshal_private_key(other))
        with pytest.raises(KeyDeserializationError, match="does not match"):
            unmarshal_private_key(encode_envelope(KEY_TYPE_ED25519, data[:32] + other_data[32:]))

    def test_ed25519_bad_length(self):
        with pytest.raises(KeyDeserializationError, match="length"):
            unmarshal_private_key(encode_envelope(KEY_TYPE_ED25519, b"\x00" * 10))

    def test_secp256k1_roundtrip(self):
        key = generate_key("secp256k1")
        buf = marshal_private_key(key)
        kt, data = decode_envelope(buf)
        assert kt == KEY_TYPE_SECP256K1
        assert len(data) == 32
        out = unmarshal_private_key(buf)
        assert isinstance(out.curve, ec.SECP256K1)
        assert key_equals(key, out)

    def test_ecdsa_roundtrip(self):
        key = generate_key("ecdsa")
        buf = marshal_private_key(key)
        assert decode_envelope(buf)[0] == KEY_TYPE_ECDSA
        out = unmarshal_private_key(buf)
        assert isinstance(out.curve, ec.SECP256R1)
        assert key_equals(key, out)

    def test_rsa_roundtrip(self, rsa_key):
        buf = marshal_private_key(rsa_key)
        assert decode_envelope(buf)[0] == KEY_TYPE_RSA
        out = unmarshal_private_key(buf)
        assert isinstance(out, rsa.RSAPrivateKey)
        assert key_equals(rsa_key, out)

    def test_rsa_type_with_ec_data_rejected(self):
        ec_key = generate_key("ecdsa")
        der = ec_key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
        with pytest.raises(KeyDeserializationError, match="expected RSAPrivateKey"):
            unmarshal_private_key(encode_envelope(KEY_TYPE_RSA, der))

    def test_garbage_der_rejected(self):
        with pytest.raises(KeyDeserializationError):
            unmarshal_private_key(encode_envelope(KEY_TYPE_ECDSA, b"not der"))

    def test_unknown_key_type(self):
        with pytest.raises(KeyDeserializationError, match="Unknown key type"):
            unmarshal_private_key(encode_envelope(9, b"abc"))

    def test_unsupported_key_object(self):
        with pytest.raises(KeySerializationError):
            marshal_private_key("not a key")

    def test_small_rsa_rejected(self):
        small = rsa.generate_private_key(public_exponent=65537, key_size=1024)
        with pytest.raises(KeySerializationError, match="too small"):
            marshal_private_key(small)

    def test_generate_unknown_type(self):
        with pytest.raises(KeySerializationError, match="Unknown key type"):
            generate_key("dsa")

    def test_key_equals_distinguishes_keys(self):
        a = generate_key("ed25519")
        b = generate_key("ed25519")
        assert key_equals(a, a)
        assert not key_equals(a, b)

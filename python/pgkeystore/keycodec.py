"""Private key codec (libp2p-compatible protobuf envelope).

message PrivateKey {
  required KeyType Type = 1;
  required bytes Data = 2;
}

enum KeyType {
  RSA = 0;
  Ed25519 = 1;
  Secp256k1 = 2;
  ECDSA = 3;
}

Data per key type:
- RSA: PKCS#1 DER
- Ed25519: 64 bytes, private seed followed by the public key
- Secp256k1: 32-byte big-endian private scalar
- ECDSA: SEC1 DER ("EC PRIVATE KEY")
"""
from __future__ import annotations

import hmac
from typing import Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from pgkeystore.errors import KeyDeserializationError, KeySerializationError

PrivateKey = Union[
    rsa.RSAPrivateKey,
    ed25519.Ed25519PrivateKey,
    ec.EllipticCurvePrivateKey,
]

KEY_TYPE_RSA = 0
KEY_TYPE_ED25519 = 1
KEY_TYPE_SECP256K1 = 2
KEY_TYPE_ECDSA = 3

KEY_TYPE_NAMES = {
    "rsa": KEY_TYPE_RSA,
    "ed25519": KEY_TYPE_ED25519,
    "secp256k1": KEY_TYPE_SECP256K1,
    "ecdsa": KEY_TYPE_ECDSA,
}

WIRE_TYPE_VARINT = 0
WIRE_TYPE_64BIT = 1
WIRE_TYPE_LENGTH_DELIMITED = 2
WIRE_TYPE_32BIT = 5

# Type and the Data length are both uint32 on the wire; larger varints are rejected.
UINT32_MAX = 0xFFFFFFFF

ED25519_SEED_LEN = 32
ED25519_PUB_LEN = 32
SECP256K1_SCALAR_LEN = 32

# RSA keys below this size are refused on both encode and decode
MIN_RSA_BITS = 2048


def _encode_varint(value: int) -> bytes:
    if not 0 <= value <= UINT32_MAX:
        raise KeySerializationError(f"Varint out of uint32 range: {value}")
    v = value
    out = bytearray()
    while v >= 0x80:
        out.append((v & 0x7F) | 0x80)
        v >>= 7
    out.append(v)
    return bytes(out)


def _decode_varint(buf: bytes, offset: int) -> tuple:
    """Decode a varint from buf at offset. Returns (value, next_offset)."""
    result = 0
    shift = 0
    pos = offset
    bytes_read = 0
    while pos < len(buf):
        if bytes_read >= 5:
            raise KeyDeserializationError("Varint too long (> 5 bytes for uint32)")
        b = buf[pos]
        pos += 1
        bytes_read += 1
        result |= (b & 0x7F) << shift
        if not (b & 0x80):
            if result > UINT32_MAX:
                raise KeyDeserializationError("Varint exceeds uint32 range")
            return result, pos
        shift += 7
    raise KeyDeserializationError("Unexpected end of buffer while decoding varint")


def _skip_field(buf: bytes, offset: int, wire_type: int) -> int:
    """Skip a field based on wire type. Returns new offset."""
    limit = len(buf)
    if wire_type == WIRE_TYPE_VARINT:
        _, offset = _decode_varint(buf, offset)
        return offset
    elif wire_type == WIRE_TYPE_64BIT:
        if offset + 8 > limit:
            raise KeyDeserializationError("Unexpected end of buffer skipping 64-bit field")
        return offset + 8
    elif wire_type == WIRE_TYPE_LENGTH_DELIMITED:
        skip_len, offset = _decode_varint(buf, offset)
        if offset + skip_len > limit:
            raise KeyDeserializationError("Length-delimited field exceeds buffer")
        return offset + skip_len
    elif wire_type == WIRE_TYPE_32BIT:
        if offset + 4 > limit:
            raise KeyDeserializationError("Unexpected end of buffer skipping 32-bit field")
        return offset + 4
    else:
        raise KeyDeserializationError(f"Unknown wire type {wire_type}")


def encode_envelope(key_type: int, data: bytes) -> bytes:
    """Encode (key_type, data) as PrivateKey protobuf bytes."""
    type_field = _encode_varint((1 << 3) | WIRE_TYPE_VARINT) + _encode_varint(key_type)
    data_tag = _encode_varint((2 << 3) | WIRE_TYPE_LENGTH_DELIMITED)
    return type_field + data_tag + _encode_varint(len(data)) + data


def decode_envelope(buf: bytes) -> tuple[int, bytes]:
    """Decode PrivateKey protobuf bytes into (key_type, data)."""
    key_type: int | None = None
    data: bytes | None = None
    offset = 0
    length = len(buf)

    while offset < length:
        tag_val, offset = _decode_varint(buf, offset)
        field_number = tag_val >> 3
        wire_type = tag_val & 0x07

        if field_number == 1 and wire_type == WIRE_TYPE_VARINT:
            key_type, offset = _decode_varint(buf, offset)
        elif field_number == 2 and wire_type == WIRE_TYPE_LENGTH_DELIMITED:
            data_len, offset = _decode_varint(buf, offset)
            if offset + data_len > length:
                raise KeyDeserializationError(
                    f"Data length {data_len} exceeds buffer (offset={offset}, bufLen={length})"
                )
            data = bytes(buf[offset : offset + data_len])
            offset += data_len
        else:
            offset = _skip_field(buf, offset, wire_type)

    if key_type is None:
        raise KeyDeserializationError("PrivateKey envelope is missing the Type field")
    if data is None:
        raise KeyDeserializationError("PrivateKey envelope is missing the Data field")
    return key_type, data


def _raw_ed25519(key: ed25519.Ed25519PrivateKey) -> bytes:
    seed = key.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption(),
    )
    pub = key.public_key().public_bytes(
        serialization.Encoding.Raw, serialization.PublicFormat.Raw
    )
    return seed + pub


def marshal_private_key(key: PrivateKey) -> bytes:
    """Serialize a private key into its protobuf envelope."""
    if isinstance(key, ed25519.Ed25519PrivateKey):
        return encode_envelope(KEY_TYPE_ED25519, _raw_ed25519(key))

    if isinstance(key, rsa.RSAPrivateKey):
        if key.key_size < MIN_RSA_BITS:
            raise KeySerializationError(
                f"RSA key too small: {key.key_size} bits (minimum {MIN_RSA_BITS})"
            )
        der = key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
        return encode_envelope(KEY_TYPE_RSA, der)

    if isinstance(key, ec.EllipticCurvePrivateKey):
        if isinstance(key.curve, ec.SECP256K1):
            scalar = key.private_numbers().private_value
            return encode_envelope(
                KEY_TYPE_SECP256K1, scalar.to_bytes(SECP256K1_SCALAR_LEN, "big")
            )
        der = key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
        return encode_envelope(KEY_TYPE_ECDSA, der)

    raise KeySerializationError(f"Unsupported private key type: {type(key).__name__}")


def _load_ed25519(data: bytes) -> ed25519.Ed25519PrivateKey:
    expected = ED25519_SEED_LEN + ED25519_PUB_LEN
    if len(data) == expected + ED25519_PUB_LEN:
        # legacy encoding carries a redundant copy of the public key
        if not hmac.compare_digest(data[expected:], data[ED25519_SEED_LEN:expected]):
            raise KeyDeserializationError("Ed25519 legacy key has mismatched public keys")
        data = data[:expected]
    if len(data) != expected:
        raise KeyDeserializationError(
            f"Invalid Ed25519 key length: expected {expected}, got {len(data)}"
        )
    key = ed25519.Ed25519PrivateKey.from_private_bytes(data[:ED25519_SEED_LEN])
    if not hmac.compare_digest(_raw_ed25519(key), data):
        raise KeyDeserializationError("Ed25519 public key does not match private seed")
    return key


def _load_der(data: bytes, expected: type) -> PrivateKey:
    key = serialization.load_der_private_key(data, password=None)
    if not isinstance(key, expected):
        raise KeyDeserializationError(
            f"Decoded {type(key).__name__}, expected {expected.__name__}"
        )
    return key


def unmarshal_private_key(buf: bytes) -> PrivateKey:
    """Parse protobuf envelope bytes back into a private key."""
    key_type, data = decode_envelope(bytes(buf))
    try:
        if key_type == KEY_TYPE_ED25519:
            return _load_ed25519(data)
        if key_type == KEY_TYPE_RSA:
            key = _load_der(data, rsa.RSAPrivateKey)
            if key.key_size < MIN_RSA_BITS:
                raise KeyDeserializationError(
                    f"RSA key too small: {key.key_size} bits (minimum {MIN_RSA_BITS})"
                )
            return key
        if key_type == KEY_TYPE_SECP256K1:
            if len(data) != SECP256K1_SCALAR_LEN:
                raise KeyDeserializationError(
                    f"Invalid Secp256k1 key length: expected {SECP256K1_SCALAR_LEN}, got {len(data)}"
                )
            return ec.derive_private_key(int.from_bytes(data, "big"), ec.SECP256K1())
        if key_type == KEY_TYPE_ECDSA:
            return _load_der(data, ec.EllipticCurvePrivateKey)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        if isinstance(e, KeyDeserializationError):
            raise
        raise KeyDeserializationError(f"Invalid key data for type {key_type}: {e}") from e
    raise KeyDeserializationError(f"Unknown key type {key_type}")


def generate_key(key_type: str = "ed25519", bits: int = MIN_RSA_BITS) -> PrivateKey:
    """Generate a fresh private key of the named type."""
    kt = KEY_TYPE_NAMES.get(key_type.lower())
    if kt == KEY_TYPE_ED25519:
        return ed25519.Ed25519PrivateKey.generate()
    if kt == KEY_TYPE_RSA:
        if bits < MIN_RSA_BITS:
            raise KeySerializationError(f"RSA key too small: {bits} bits (minimum {MIN_RSA_BITS})")
        return rsa.generate_private_key(public_exponent=65537, key_size=bits)
    if kt == KEY_TYPE_SECP256K1:
        return ec.generate_private_key(ec.SECP256K1())
    if kt == KEY_TYPE_ECDSA:
        return ec.generate_private_key(ec.SECP256R1())
    raise KeySerializationError(
        f"Unknown key type {key_type!r} (expected one of {', '.join(sorted(KEY_TYPE_NAMES))})"
    )


def key_equals(a: PrivateKey, b: PrivateKey) -> bool:
    """Return True if both keys marshal to the same bytes."""
    return hmac.compare_digest(marshal_private_key(a), marshal_private_key(b))

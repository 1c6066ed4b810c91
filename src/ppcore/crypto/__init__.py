"""Cryptographic primitives module"""

from ppcore.crypto.poseidon import SNARK_SCALAR_FIELD, poseidon

__all__ = [
    'SNARK_SCALAR_FIELD',
    'poseidon',
]

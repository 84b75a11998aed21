# /*
# Copyright 2026 The oidc-e2e Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Self-signed serving certificates for deployed test apps."""

from __future__ import annotations

import datetime as dt
import ipaddress
from dataclasses import dataclass

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from oidc_e2e.constants import KEY_BUNDLE_RSA_BITS, KEY_BUNDLE_VALIDITY_DAYS


@dataclass(frozen=True)
class KeyBundle:
    """PEM certificate and private key issued for a host and IP set.

    The certificate is self-signed and marked as a CA, so the same bytes serve
    both as the app's serving certificate and as the trust anchor clients load.
    """

    cert_pem: bytes
    key_pem: bytes
    host: str
    ips: tuple[str, ...] = ()

    def private_key(self) -> rsa.RSAPrivateKey:
        return serialization.load_pem_private_key(self.key_pem, password=None)


def generate_key_bundle(host: str, ips: tuple[str, ...] | list[str] = ()) -> KeyBundle:
    """Generate a fresh RSA key and a self-signed certificate for *host* and *ips*.

    Args:
        host: DNS name placed in the subject CN and the SAN list.
        ips: IP addresses added to the SAN list (e.g. node InternalIPs).

    Returns:
        The generated key bundle.
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=KEY_BUNDLE_RSA_BITS)

    subject = issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, host)])
    alt_names: list[x509.GeneralName] = [x509.DNSName(host)]
    alt_names += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ips]

    now = dt.datetime.now(dt.timezone.utc)
    cert = x509.CertificateBuilder().subject_name(
        subject
    ).issuer_name(
        issuer
    ).public_key(
        private_key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now - dt.timedelta(minutes=5)
    ).not_valid_after(
        now + dt.timedelta(days=KEY_BUNDLE_VALIDITY_DAYS)
    ).add_extension(
        x509.SubjectAlternativeName(alt_names), critical=False
    ).add_extension(
        x509.BasicConstraints(ca=True, path_length=None), critical=True
    ).sign(private_key, hashes.SHA256())

    return KeyBundle(
        cert_pem=cert.public_bytes(serialization.Encoding.PEM),
        key_pem=private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ),
        host=host,
        ips=tuple(ips),
    )

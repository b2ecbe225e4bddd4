import unittest

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import ExtendedKeyUsageOID

from opcua_input.security import CertificateProvisioner


class CertificateProvisionerTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.identity = CertificateProvisioner().provision("line-reader")

    def test_application_uri_in_san(self):
        identity = self.identity
        self.assertRegex(identity.application_uri, r"^urn:line-reader:client-[a-z0-9]{8}$")

        san = identity.certificate.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        self.assertIn(identity.application_uri, san.get_values_for_type(x509.UniformResourceIdentifier))

    def test_key_and_validity(self):
        certificate = self.identity.certificate
        self.assertGreaterEqual(self.identity.private_key.key_size, 2048)
        lifetime = certificate.not_valid_after_utc - certificate.not_valid_before_utc
        self.assertGreaterEqual(lifetime.days, 3650)

    def test_extended_key_usage(self):
        usage = self.identity.certificate.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
        self.assertIn(ExtendedKeyUsageOID.CLIENT_AUTH, usage)
        self.assertIn(ExtendedKeyUsageOID.SERVER_AUTH, usage)

    def test_encodings_round_trip(self):
        certificate = x509.load_der_x509_certificate(self.identity.certificate_der)
        self.assertEqual(certificate, self.identity.certificate)

        key = serialization.load_pem_private_key(self.identity.private_key_pem, password=None)
        self.assertEqual(key.public_key().public_numbers(), certificate.public_key().public_numbers())

    def test_each_identity_is_unique(self):
        other = CertificateProvisioner().provision("line-reader")
        self.assertNotEqual(other.application_uri, self.identity.application_uri)
        self.assertNotEqual(other.certificate.serial_number, self.identity.certificate.serial_number)

    def test_rejects_weak_keys(self):
        with self.assertRaises(ValueError):
            CertificateProvisioner(key_size=1024)


if __name__ == "__main__":
    unittest.main()

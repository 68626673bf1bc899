"""The Command Line Interface for the key handle, a small diagnostic front end.

Typical usage example:

    rsakey genrsa --out key.pem --pubout key.pub --bits 2048
    rsakey check --key key.pem
    python -m rsakey text --key key.pem
"""
# Copyright (c) 2025-present Tech. TTGames
# SPDX-License-Identifier: EPL-2.0
import argparse
import base64
import binascii
import getpass
import hashlib
import pathlib
import sys
import typing

import rsakey
from rsakey import cipher
from rsakey import digests


class HelpData(typing.NamedTuple):
    description: str
    format: typing.Type = str
    choices: list[str] | None = None
    default: typing.Any = None


help_dict: dict[str, HelpData] = {
    "genrsa": HelpData("Generate a private key, and optionally write its public key."),
    "pubkey": HelpData("Extract the public key of a private key."),
    "check": HelpData("Check the consistency of a private key."),
    "text": HelpData("Print the key components."),
    "sign": HelpData("Sign the digest of a file."),
    "verify": HelpData("Verify the signature of a file digest."),
    "key": HelpData("Location of the input key file.", format=pathlib.Path),
    "out": HelpData("Location of the output key file.", format=pathlib.Path),
    "pubout": HelpData("Location to write the public key to.", format=pathlib.Path),
    "bits": HelpData("Modulus size (in bits).", format=int, default=2048),
    "exponent": HelpData("Public exponent.", format=int, default=65537),
    "cipher": HelpData("Cipher protecting the private key.", choices=sorted(cipher.CIPHERS)),
    "format": HelpData("Public key format.", choices=["pkcs1", "spki"], default="spki"),
    "public": HelpData("The input file holds a public key."),
    "spki": HelpData("The public key is in SubjectPublicKeyInfo format rather than PKCS #1."),
    "indent": HelpData("Indentation of the printed key.", format=int, default=0),
    "digest": HelpData("Digest algorithm.", choices=sorted(digests.DIGESTS), default="sha256"),
    "message": HelpData("File whose digest is signed or verified.", format=pathlib.Path),
    "signature": HelpData("Base64 encoded signature.", format=str),
}


def _arg(parser: argparse.ArgumentParser, name: str, *flags: str, required: bool = False) -> None:
    data = help_dict[name]
    kwargs: dict[str, typing.Any] = {"help": data.description, "default": data.default, "dest": name}
    if data.choices is not None:
        kwargs["choices"] = data.choices
    else:
        kwargs["type"] = data.format
    parser.add_argument(f"--{name}", *flags, required=required, **kwargs)


inkey = argparse.ArgumentParser(add_help=False)
_arg(inkey, "key", "-k", required=True)
digested = argparse.ArgumentParser(add_help=False)
_arg(digested, "digest", "-d")
_arg(digested, "message", "-m", required=True)

corep = argparse.ArgumentParser(prog="rsakey")
corep.add_argument("--version", "-v", action="version", version=f"%(prog)s {rsakey.__version__}")
commands = corep.add_subparsers(dest="subcommand", title="Subcommands", required=True)

genrsa = commands.add_parser("genrsa", help=help_dict["genrsa"].description)
_arg(genrsa, "out", "-o", required=True)
_arg(genrsa, "pubout")
_arg(genrsa, "bits", "-b")
_arg(genrsa, "exponent", "-e")
_arg(genrsa, "cipher", "-c")

pubkey = commands.add_parser("pubkey", parents=[inkey], help=help_dict["pubkey"].description)
_arg(pubkey, "out", "-o", required=True)
_arg(pubkey, "format", "-f")

check = commands.add_parser("check", parents=[inkey], help=help_dict["check"].description)

text = commands.add_parser("text", parents=[inkey], help=help_dict["text"].description)
text.add_argument("--public", action="store_true", help=help_dict["public"].description)
_arg(text, "indent")

sign = commands.add_parser("sign", parents=[inkey, digested], help=help_dict["sign"].description)

verify = commands.add_parser("verify", parents=[inkey, digested], help=help_dict["verify"].description)
_arg(verify, "signature", "-s", required=True)
verify.add_argument("--spki", action="store_true", help=help_dict["spki"].description)


def prompt_passphrase(writing: bool) -> str:
    """Passphrase callback reading from the terminal."""
    phrase = getpass.getpass("Enter PEM pass phrase: ")
    if writing and getpass.getpass("Verifying - Enter PEM pass phrase: ") != phrase:
        return ""
    return phrase


def hash_file(file: pathlib.Path, dtype: str) -> bytes:
    """Digest of a file contents."""
    with open(file, "rb") as f:
        return hashlib.new(dtype.replace("_", "-"), f.read()).digest()


def load_private(file: pathlib.Path) -> rsakey.RSAKey:
    return rsakey.RSAKey.from_private_key(file, prompt_passphrase)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI, returning the exit status."""
    args = corep.parse_args(argv)
    try:
        match args.subcommand:
            case "genrsa":
                key = rsakey.RSAKey.generate_private_key(args.bits, args.exponent)
                algorithm = cipher.CipherAlgorithm.from_name(args.cipher) if args.cipher else None
                with open(args.out, "wb") as f:
                    key.write_private_key(f, algorithm, callback=prompt_passphrase if algorithm else None)
                if args.pubout is not None:
                    with open(args.pubout, "wb") as f:
                        key.write_certificate_public_key(f)
            case "pubkey":
                pub = load_private(args.key).to_public_key()
                with open(args.out, "wb") as f:
                    if args.format == "pkcs1":
                        pub.write_public_key(f)
                    else:
                        pub.write_certificate_public_key(f)
            case "check":
                try:
                    load_private(args.key).check()
                except rsakey.ValidationError as exc:
                    print(f"RSA key error: {exc}")
                    return 1
                print("RSA key ok")
            case "text":
                source = args.key
                if args.public:
                    key = rsakey.RSAKey.from_certificate_public_key(source)
                else:
                    key = load_private(source)
                key.print(sys.stdout, args.indent)
            case "sign":
                key = load_private(args.key)
                signature = key.sign(hash_file(args.message, args.digest), args.digest)
                print(base64.b64encode(signature).decode("ascii"))
            case "verify":
                source = args.key
                if args.spki:
                    key = rsakey.RSAKey.from_certificate_public_key(source)
                else:
                    key = rsakey.RSAKey.from_public_key(source)
                try:
                    signature = base64.b64decode(args.signature, validate=True)
                except binascii.Error as exc:
                    raise rsakey.InvalidArgument(f"Signature is not valid base64: {exc}") from exc
                try:
                    key.verify(signature, hash_file(args.message, args.digest), args.digest)
                except rsakey.VerificationFailed:
                    print("Verification Failure")
                    return 1
                print("Verified OK")
    except (rsakey.CryptoError, OSError) as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())

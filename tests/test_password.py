"""
Tests for PasswordResolver.

Tests cover:
- Source priority for sealing (context, environment, file, prompt)
- First-time interactive setup and its failures
- Verify-before-trust resolution for opening
- Retry loop, capped attempts and persistence of verified passwords
"""
import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from envseal.vault import crypto
from envseal.vault.config import VaultConfig
from envseal.vault.crypto import seal
from envseal.vault.exceptions import (
    EmptyPassword,
    InvalidPlaintext,
    MalformedBlob,
    PasswordMismatch,
    RetriesExhausted,
)
from envseal.vault.password import (
    CONFIRM_PROMPT,
    ENTER_PROMPT,
    PasswordContext,
    PasswordResolver,
    PasswordSource,
)
from envseal.vault.storage import PasswordFile

VAR = "ENV_ENCRYPTION_PASSWORD"
CORRECT = "correct horse"


# --- Test Fixtures ---

class ScriptedPrompt:
    """Answers prompts from a fixed list and records the questions."""
    def __init__(self, *answers):
        self.answers = list(answers)
        self.asked = []

    def __call__(self, message):
        self.asked.append(message)
        if not self.answers:
            raise AssertionError(f"unexpected prompt: {message!r}")
        answer = self.answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer


class FailingStore(PasswordFile):
    """Password file whose writes always fail."""
    def save(self, password):
        raise PermissionError("read-only filesystem")


@pytest.fixture(scope="module")
def blob():
    return seal("A=1\nB=2\n", CORRECT)


@pytest.fixture
def config(tmp_path):
    return VaultConfig(password_file=tmp_path / ".env.password")


@pytest.fixture
def store(config):
    return PasswordFile(config.password_file, VAR)


def make_resolver(config, *answers, environ=None, **kwargs):
    prompt = ScriptedPrompt(*answers)
    environ = {} if environ is None else environ
    resolver = PasswordResolver(config, prompt=prompt, environ=environ, **kwargs)
    return resolver, prompt, environ


# --- Sealing ---

class TestResolveForSealing:
    """Tests for choosing a password with no ciphertext to check."""

    def test_environment_first(self, config, store):
        store.save("from-file")
        resolver, prompt, _ = make_resolver(config, environ={VAR: "from-env"})
        resolved = resolver.resolve_for_sealing()
        assert resolved.password == "from-env"
        assert resolved.source is PasswordSource.ENVIRONMENT
        assert prompt.asked == []

    def test_file_second_and_exported(self, config, store):
        store.save("from-file")
        resolver, prompt, environ = make_resolver(config)
        resolved = resolver.resolve_for_sealing()
        assert resolved.source is PasswordSource.FILE
        assert environ[VAR] == "from-file"
        assert resolver.context.password == "from-file"

    def test_export_disabled(self, tmp_path, store):
        config = VaultConfig(password_file=store.path, export_env=False)
        store.save("from-file")
        resolver, _, environ = make_resolver(config)
        assert resolver.resolve_for_sealing().password == "from-file"
        assert VAR not in environ
        assert resolver.context.password == "from-file"

    def test_context_reused(self, config):
        resolver, prompt, _ = make_resolver(config, CORRECT, CORRECT)
        first = resolver.resolve_for_sealing()
        second = resolver.resolve_for_sealing()
        assert first.source is PasswordSource.PROMPT
        assert second.source is PasswordSource.CONTEXT
        assert second.password == CORRECT
        assert prompt.asked == [ENTER_PROMPT, CONFIRM_PROMPT]

    def test_shared_context(self, config):
        context = PasswordContext()
        first, _, _ = make_resolver(config, CORRECT, CORRECT, context=context)
        first.resolve_for_sealing()
        second, prompt, _ = make_resolver(config, context=context)
        assert second.resolve_for_sealing().password == CORRECT
        assert prompt.asked == []

    def test_interactive_setup_persists(self, config, store):
        resolver, prompt, environ = make_resolver(config, CORRECT, CORRECT)
        resolved = resolver.resolve_for_sealing()
        assert resolved.password == CORRECT
        assert store.load() == CORRECT
        assert environ[VAR] == CORRECT

    def test_empty_password(self, config, store):
        resolver, _, environ = make_resolver(config, "")
        with pytest.raises(EmptyPassword):
            resolver.resolve_for_sealing()
        assert not store.exists()
        assert VAR not in environ

    def test_eof_is_empty_password(self, config):
        resolver, _, _ = make_resolver(config, EOFError())
        with pytest.raises(EmptyPassword):
            resolver.resolve_for_sealing()

    def test_mismatch(self, config, store):
        resolver, _, _ = make_resolver(config, CORRECT, "correct hose")
        with pytest.raises(PasswordMismatch):
            resolver.resolve_for_sealing()
        assert not store.exists()

    def test_persist_failure_is_not_fatal(self, config, caplog):
        failing = FailingStore(config.password_file, VAR)
        resolver, _, environ = make_resolver(config, CORRECT, CORRECT, store=failing)
        assert resolver.resolve_for_sealing().password == CORRECT
        assert environ[VAR] == CORRECT
        assert "Could not save password" in caplog.text


# --- Opening ---

class TestResolveForOpening:
    """Tests for verify-before-trust password resolution."""

    def test_environment_password(self, config, blob):
        resolver, prompt, _ = make_resolver(config, environ={VAR: CORRECT})
        resolved = resolver.resolve_for_opening(blob)
        assert resolved.source is PasswordSource.ENVIRONMENT
        assert prompt.asked == []

    def test_falls_through_to_file_without_prompting(self, config, store, blob, caplog):
        store.save(CORRECT)
        resolver, prompt, environ = make_resolver(config, environ={VAR: "wrong"})
        resolved = resolver.resolve_for_opening(blob)
        assert resolved.password == CORRECT
        assert resolved.source is PasswordSource.FILE
        assert prompt.asked == []
        assert environ[VAR] == CORRECT
        assert "environment failed" in caplog.text

    def test_retry_loop_persists_verified_password(self, config, store, blob):
        store.save("stale")
        resolver, prompt, environ = make_resolver(
            config, "wrong", "also wrong", CORRECT, environ={VAR: "bad"},
        )
        resolved = resolver.resolve_for_opening(blob)
        assert resolved.password == CORRECT
        assert resolved.source is PasswordSource.PROMPT
        assert prompt.asked == [ENTER_PROMPT] * 3
        assert store.load() == CORRECT
        assert environ[VAR] == CORRECT

    def test_wrong_entry_not_persisted(self, config, store, blob):
        resolver, _, _ = make_resolver(config, "wrong", "")
        with pytest.raises(EmptyPassword):
            resolver.resolve_for_opening(blob)
        assert not store.exists()

    def test_capped_attempts(self, tmp_path, blob):
        config = VaultConfig(password_file=tmp_path / "pw", max_attempts=2)
        resolver, prompt, _ = make_resolver(config, "one", "two", CORRECT)
        with pytest.raises(RetriesExhausted) as exc_info:
            resolver.resolve_for_opening(blob)
        assert exc_info.value.attempts == 2
        assert len(prompt.asked) == 2

    def test_malformed_blob_aborts_before_prompting(self, config):
        resolver, prompt, _ = make_resolver(config, CORRECT)
        with pytest.raises(MalformedBlob):
            resolver.resolve_for_opening("not a blob")
        assert prompt.asked == []

    def test_stale_context_is_dropped(self, config, blob):
        context = PasswordContext()
        sealer, _, _ = make_resolver(config, "other", "other", context=context)
        sealer.resolve_for_sealing()
        resolver, _, _ = make_resolver(config, CORRECT, context=context)
        assert resolver.resolve_for_opening(blob).password == CORRECT
        assert context.password == CORRECT

    def test_persist_failure_still_returns_password(self, config, blob):
        failing = FailingStore(config.password_file, VAR)
        resolver, _, _ = make_resolver(config, CORRECT, store=failing)
        assert resolver.resolve_for_opening(blob).password == CORRECT

    def test_eof_is_empty_password(self, config, blob):
        resolver, _, _ = make_resolver(config, "wrong", EOFError())
        with pytest.raises(EmptyPassword):
            resolver.resolve_for_opening(blob)

    def test_saved_password_is_reported(self, config, blob, caplog):
        resolver, _, _ = make_resolver(config, CORRECT)
        resolver.resolve_for_opening(blob)
        assert "Password saved to" in caplog.text

    def test_verified_file_password_not_rewritten(self, config, store, blob, monkeypatch):
        store.save(CORRECT)
        saves = []
        monkeypatch.setattr(PasswordFile, "save", lambda self, pw: saves.append(pw))
        resolver, prompt, _ = make_resolver(config)
        assert resolver.resolve_for_opening(blob).source is PasswordSource.FILE
        assert saves == []
        assert prompt.asked == []

    def test_record_written_meanwhile_not_rewritten(self, config, store, blob, monkeypatch):
        """A record that already holds the entered password is left alone."""
        saves = []
        monkeypatch.setattr(PasswordFile, "save", lambda self, pw: saves.append(pw))

        def prompt(message):
            store.path.write_text(f"{VAR}={CORRECT}\n")
            return CORRECT

        resolver = PasswordResolver(config, prompt=prompt, environ={})
        assert resolver.resolve_for_opening(blob).password == CORRECT
        assert saves == []


class TestUnseal:
    """Tests for resolving a password and returning the plaintext."""

    def test_returns_plaintext(self, config, blob):
        resolver, _, _ = make_resolver(config, "wrong", CORRECT)
        assert resolver.unseal(blob) == "A=1\nB=2\n"
        assert resolver.context.password == CORRECT

    def test_key_derived_once_per_candidate(self, config, blob, monkeypatch):
        calls = []
        real_derive = crypto.derive_key

        def counting_derive(password, salt):
            calls.append(password)
            return real_derive(password, salt)

        monkeypatch.setattr(crypto, "derive_key", counting_derive)
        resolver, _, _ = make_resolver(config, environ={VAR: CORRECT})
        assert resolver.unseal(blob) == "A=1\nB=2\n"
        assert calls == [CORRECT]

    def test_non_text_payload(self, config):
        salt, nonce = b"\x01" * crypto.SALT_SIZE, b"\x02" * crypto.NONCE_SIZE
        sealed = AESGCM(crypto.derive_key(CORRECT, salt)).encrypt(nonce, b"\xff", salt)
        binary = crypto.SealedBlob(
            salt=salt, nonce=nonce,
            tag=sealed[-crypto.TAG_SIZE:], ciphertext=sealed[:-crypto.TAG_SIZE],
        )
        resolver, _, _ = make_resolver(config, environ={VAR: CORRECT})
        with pytest.raises(InvalidPlaintext):
            resolver.unseal(binary)
        assert resolver.resolve_for_opening(binary).password == CORRECT

from panda.assistant_engine.components.classifier import classify
from panda.assistant_engine.components.permissions import PermissionGate, StaticCapabilityGate
from panda.assistant_engine.models import PHONE_CALL, SEND_SMS


def test_dial_and_send_text_require_capabilities() -> None:
    gate = PermissionGate(StaticCapabilityGate())
    assert gate.required_capability(classify("call 555 1234")) == PHONE_CALL
    assert gate.required_capability(classify("send text to mom saying hi")) == SEND_SMS


def test_other_commands_require_nothing() -> None:
    gate = PermissionGate(StaticCapabilityGate())
    for text in ("open youtube", "what time is it", "play music", "set alarm for 6:30", "hello"):
        command = classify(text)
        assert gate.required_capability(command) is None
        assert gate.missing_capability(command) is None
        assert gate.evaluate(command).allowed is True


def test_missing_capability_until_granted() -> None:
    capabilities = StaticCapabilityGate()
    gate = PermissionGate(capabilities)
    command = classify("call 555 1234")

    decision = gate.evaluate(command)
    assert decision.allowed is False
    assert decision.capability == PHONE_CALL
    assert gate.missing_capability(command) == PHONE_CALL

    assert capabilities.grant(PHONE_CALL) is True
    assert gate.missing_capability(command) is None
    assert gate.evaluate(command).allowed is True


def test_static_gate_grant_is_idempotent_and_revocable() -> None:
    capabilities = StaticCapabilityGate([" Send-SMS "])
    assert capabilities.is_granted(SEND_SMS) is True
    assert capabilities.grant(SEND_SMS) is False
    capabilities.revoke(SEND_SMS)
    assert capabilities.is_granted(SEND_SMS) is False
    assert capabilities.granted() == ()

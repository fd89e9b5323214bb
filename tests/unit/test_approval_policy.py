"""Tests for command classification and rendering."""

from __future__ import annotations

import pytest

from kubeai.approval.policy import (
    ApprovalPolicy,
    CommandCategory,
    classify_command,
    is_composite,
    render_command,
)

POLICY = ApprovalPolicy()


def _classify(command: str) -> CommandCategory:
    return classify_command(command, POLICY)


class TestClassify:
    @pytest.mark.parametrize(
        "command",
        [
            "kubectl get pods",
            "kubectl -n kube-system get pods -o wide",
            "kubectl --context prod describe deployment nginx",
            "kubectl logs pod/nginx --tail 50",
            "kubectl get pods --all-namespaces",
            "kubectl rollout status deployment/api",
            "kubectl config view",
            "kubectl auth can-i list pods",
            "ls -la /tmp",
            "df -h",
        ],
    )
    def test_read_only(self, command):
        assert _classify(command) is CommandCategory.READ_ONLY

    @pytest.mark.parametrize(
        "command",
        [
            "kubectl apply -f deploy.yaml",
            "kubectl scale deployment nginx --replicas=3",
            "kubectl -n default exec -it nginx -- sh",
            "kubectl rollout restart deployment/api",
            "kubectl config use-context prod",
            "mkdir /tmp/x",
            "kubectl frobnicate widgets",
        ],
    )
    def test_write(self, command):
        assert _classify(command) is CommandCategory.WRITE

    @pytest.mark.parametrize(
        "command",
        [
            "kubectl delete pod nginx",
            "kubectl -n prod DELETE deployment api",
            "kubectl drain node-1",
            "kubectl get pods --all",
            "kubectl rollout undo deployment/api",
            "rm -rf /var/lib/data",
            "kubectl get pods | xargs kubectl delete",
        ],
    )
    def test_dangerous(self, command):
        assert _classify(command) is CommandCategory.DANGEROUS

    @pytest.mark.parametrize(
        "command",
        [
            "kubectl get pods | grep nginx",
            "echo hi > /etc/motd",
            "ls && touch x",
            "cat $(which kubectl)",
            "ls & touch /tmp/x",
            "ls\ntouch /tmp/x",
            "ls\r\ntouch /tmp/x",
            "cat <(touch /tmp/x)",
            "diff >(tee /tmp/x) /dev/null",
            "kubectl get pods & kubectl scale deploy/web --replicas=0",
        ],
    )
    def test_composite_is_at_least_write(self, command):
        assert _classify(command) is CommandCategory.WRITE

    def test_empty_is_unknown(self):
        assert _classify("   ") is CommandCategory.WRITE

    def test_unbalanced_quotes_still_classified(self):
        assert _classify("kubectl get pods -l 'app=x") is CommandCategory.READ_ONLY

    def test_substring_is_not_a_match(self):
        assert _classify("kubectl get pods -l app=undeleted") is CommandCategory.READ_ONLY

    def test_policy_lists_are_configurable(self):
        policy = ApprovalPolicy(read_only_verbs=["get", "frobnicate"])
        assert classify_command("kubectl frobnicate", policy) is CommandCategory.READ_ONLY

    def test_unknown_category_configurable(self):
        policy = ApprovalPolicy(unknown_category=CommandCategory.DANGEROUS)
        assert classify_command("mystery-tool --go", policy) is CommandCategory.DANGEROUS


class TestPolicy:
    def test_defaults(self):
        assert POLICY.timeout == 60.0
        assert POLICY.auto_approve == [CommandCategory.READ_ONLY]

    def test_requires_approval(self):
        assert POLICY.requires_approval(CommandCategory.READ_ONLY) is False
        assert POLICY.requires_approval(CommandCategory.WRITE) is True
        assert POLICY.requires_approval(CommandCategory.DANGEROUS) is True

    def test_category_values(self):
        assert str(CommandCategory.READ_ONLY) == "read-only"
        assert CommandCategory("dangerous") is CommandCategory.DANGEROUS

    def test_is_composite(self):
        assert is_composite("a | b") is True
        assert is_composite("a & b") is True
        assert is_composite("a\nb") is True
        assert is_composite("kubectl get pods -o jsonpath={.items}") is False


class TestRenderCommand:
    def test_kubectl(self):
        assert render_command("kubectl", {"command": "get pods", "namespace": "default"}) == (
            "kubectl -n default get pods"
        )

    def test_kubectl_without_namespace(self):
        assert render_command("kubectl", {"command": "kubectl get ns"}) == "kubectl get ns"

    def test_bash(self):
        assert render_command("bash", {"command": " date ", "timeout": 5}) == "date"

    def test_other_tool(self):
        assert render_command("search", {"q": "x", "a": 1}) == 'search({"a": 1, "q": "x"})'

"""配置模块单元测试"""

import pytest

from aiops_rca.config import CollaborationConfig, create_chat_model
from aiops_rca.exceptions import ConfigError


class TestCollaborationConfig:
    """阈值配置测试"""

    def test_defaults(self):
        """测试：默认阈值"""
        config = CollaborationConfig()
        assert config.anomaly_sigma == 3.0
        assert config.correlation_min == 0.7
        assert config.pattern_min_count == 2
        assert config.drain_similarity == 0.5
        assert config.temporal_window_sec == 3600
        assert config.conflict_window_sec == 300
        assert config.deadline is None

    def test_from_env(self):
        """测试：从 RCA_* 环境变量加载"""
        config = CollaborationConfig.from_env({
            "RCA_ANOMALY_SIGMA": "2.5",
            "RCA_DEADLINE": "30",
            "RCA_DEBUG": "true",
            "RCA_LLM_MODEL": "",
            "UNRELATED": "x",
        })
        assert config.anomaly_sigma == 2.5
        assert config.deadline == 30.0
        assert config.debug is True
        assert config.llm_model == "gpt-3.5-turbo"

    @pytest.mark.parametrize("env", [
        {"RCA_CORRELATION_MIN": "1.5"},
        {"RCA_CONFLICT_WINDOW_SEC": "0"},
        {"RCA_ANOMALY_SIGMA": "abc"},
    ])
    def test_from_env_invalid(self, env):
        """测试：非法环境变量抛出 ConfigError"""
        with pytest.raises(ConfigError):
            CollaborationConfig.from_env(env)

    def test_from_yaml(self, tmp_path):
        """测试：从 YAML 文件加载"""
        path = tmp_path / "rca.yaml"
        path.write_text("anomaly_sigma: 2.0\npattern_min_count: 3\nllm_model: qwen-plus\n", encoding="utf-8")

        config = CollaborationConfig.from_yaml(path)

        assert config.anomaly_sigma == 2.0
        assert config.pattern_min_count == 3
        assert config.llm_model == "qwen-plus"

    def test_from_yaml_errors(self, tmp_path):
        """测试：文件缺失、格式错误或字段非法"""
        with pytest.raises(ConfigError):
            CollaborationConfig.from_yaml(tmp_path / "missing.yaml")

        not_mapping = tmp_path / "list.yaml"
        not_mapping.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            CollaborationConfig.from_yaml(not_mapping)

        invalid = tmp_path / "invalid.yaml"
        invalid.write_text("drain_similarity: 2\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            CollaborationConfig.from_yaml(invalid)

    def test_empty_yaml_uses_defaults(self, tmp_path):
        """测试：空文件使用默认值"""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert CollaborationConfig.from_yaml(path) == CollaborationConfig()

    def test_merged_ignores_none(self):
        """测试：覆盖值为 None 时保留原值"""
        config = CollaborationConfig(deadline=10).merged(deadline=None, llm_model="m", debug=None)
        assert config.deadline == 10
        assert config.llm_model == "m"
        assert config.debug is False


class TestCreateChatModel:
    """Chat 模型创建测试"""

    def test_without_api_key(self, monkeypatch):
        """测试：没有 API key 时返回 None"""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)
        assert create_chat_model() is None

    def test_with_api_key(self, monkeypatch):
        """测试：配置 API key 时创建 ChatOpenAI"""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("OPENAI_BASE_URL", "http://localhost:8000/v1")

        chat = create_chat_model(CollaborationConfig(llm_model="qwen-plus"))

        assert chat is not None
        assert chat.model_name == "qwen-plus"

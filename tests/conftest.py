"""
Pytest 配置文件

为所有测试配置共享的 fixtures 和设置
"""

import sys
from pathlib import Path

import pytest

# 添加项目根目录到 Python 路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "src"))

from tmqa.utils.models import TranslationSegment, TranslationUnit
from tmqa.utils.settings import QASettings


def build_unit(source, target="", order=0, uid=None, source_lang="en-US", target_lang="fr-FR",
               status=None, **kwargs):
    """构建测试用翻译单元；status 缺省时按译文推导"""
    return TranslationUnit(
        id=uid or f"u{order}",
        order=order,
        source=TranslationSegment(text=source),
        target=TranslationSegment(text=target),
        status=status or ("translated" if target.strip() else "empty"),
        source_lang=source_lang,
        target_lang=target_lang,
        **kwargs,
    )


@pytest.fixture
def make_unit():
    """返回单元工厂函数"""
    return build_unit


@pytest.fixture
def settings():
    """默认 QA 设置"""
    return QASettings()


@pytest.fixture(scope="session")
def project_root_path():
    """返回项目根目录路径"""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def src_path(project_root_path):
    """返回 src 目录路径"""
    return project_root_path / "src"

"""存储布局工具异常定义"""


class LayoutError(Exception):
    """布局工具异常基类"""
    pass


class UnresolvedDeclarationError(LayoutError, LookupError):
    """结构体引用的类型声明不在声明表中 (上游输入不完整)"""

    def __init__(self, declaration_id, variable_name: str = ""):
        self.declaration_id = declaration_id
        self.variable_name = variable_name
        message = f"声明表中不存在类型声明 id={declaration_id}"
        if variable_name:
            message += f" (变量 {variable_name})"
        super().__init__(message)


class ArtifactLoadError(LayoutError):
    """编译产物无法读取或不是合法JSON"""
    pass


class ConfigError(LayoutError):
    """配置文件缺失或配置值非法"""
    pass

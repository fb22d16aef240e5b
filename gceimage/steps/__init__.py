"""googlecompute 构建步骤

生命周期顺序：
1. check_existing_image - 镜像冲突检查
2. create_ssh_key - 准备 SSH 密钥
3. create_instance - 创建实例
4. create_windows_password - 获取 Windows 密码
5. instance_info - 获取连接地址
6. connect - 建立远程会话
7. provision - 执行配置器
8. teardown_instance - 停止实例
9. create_image - 制作镜像（非 dry-run）
10. wait_startup_script - 等待启动脚本（配置了启动脚本时）
"""

from gceimage.steps.check_image import StepCheckExistingImage
from gceimage.steps.connect import StepConnect
from gceimage.steps.image import StepCreateImage
from gceimage.steps.instance import (
    StepCreateInstance,
    StepInstanceInfo,
    StepTeardownInstance,
)
from gceimage.steps.provision import StepProvision
from gceimage.steps.ssh_key import StepCreateSSHKey
from gceimage.steps.startup_script import StepWaitStartupScript
from gceimage.steps.windows_password import StepCreateWindowsPassword

__all__ = [
    "StepCheckExistingImage",
    "StepConnect",
    "StepCreateImage",
    "StepCreateInstance",
    "StepCreateSSHKey",
    "StepCreateWindowsPassword",
    "StepInstanceInfo",
    "StepProvision",
    "StepTeardownInstance",
    "StepWaitStartupScript",
]

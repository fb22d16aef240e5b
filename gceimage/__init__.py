"""gceimage - Google Compute Engine 镜像构建器"""

__version__ = "0.3.0"

# 构建器唯一标识，写入产物元信息
BUILDER_ID = "gceimage.googlecompute"

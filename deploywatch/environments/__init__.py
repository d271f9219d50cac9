from .registry import DeploymentRegistry, DeploymentTarget

from lhc.managers.provisioner.provisioner import EphemeralProvisioner, ProvisionProfile

__all__ = ["EphemeralProvisioner", "ProvisionProfile"]

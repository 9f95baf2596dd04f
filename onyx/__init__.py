"""
Onyx

Command line helpers for recurring AWS account operations: opening and closing
security group ingress rules for the caller's public IP, restarting ECS
services, pausing autoscaling and a few EC2/CloudWatch lookups.
"""

__version__ = '0.1.0'

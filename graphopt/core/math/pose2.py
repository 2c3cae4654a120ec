"""SE(2) operations for planar poses stored as [x, y, theta] vectors."""

import numpy as np


def wrap_angle(theta):
    """Wrap angle(s) to [-pi, pi)."""
    return (np.asarray(theta) + np.pi) % (2 * np.pi) - np.pi


def _check_pose(pose: np.ndarray, name: str) -> np.ndarray:
    pose = np.asarray(pose, dtype=float)
    if pose.shape != (3,):
        raise ValueError(f"{name} must be 3-element [x, y, theta] vector, got shape {pose.shape}")
    return pose


def rotation(theta: float) -> np.ndarray:
    """2x2 rotation matrix for angle theta."""
    c, s = np.cos(theta), np.sin(theta)
    return np.array([[c, -s], [s, c]])


def compose(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Compose two poses: a * b.

    Args:
        a: First pose [x, y, theta]
        b: Second pose, expressed in the frame of ``a``

    Returns:
        Composed pose
    """
    a = _check_pose(a, "a")
    b = _check_pose(b, "b")
    t = a[:2] + rotation(a[2]) @ b[:2]
    return np.array([t[0], t[1], float(wrap_angle(a[2] + b[2]))])


def invert(pose: np.ndarray) -> np.ndarray:
    """Inverse pose."""
    pose = _check_pose(pose, "pose")
    R_T = rotation(pose[2]).T
    t = -R_T @ pose[:2]
    return np.array([t[0], t[1], float(wrap_angle(-pose[2]))])


def between(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Relative pose of ``b`` seen from ``a``: inv(a) * b."""
    return compose(invert(a), b)


def local(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Difference b - a with the angle component wrapped."""
    a = _check_pose(a, "a")
    b = _check_pose(b, "b")
    d = b - a
    d[2] = wrap_angle(d[2])
    return d

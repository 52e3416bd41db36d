"""Reads the proof, program binary and optional public input from disk."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from .exceptions import ArtifactError
from .models import ProofArtifacts

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _read(path: PathLike, artifact: str, label: str) -> bytes:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ArtifactError(f"Failed to read {label}", artifact=artifact, path=str(path)) from e
    logger.debug(f"Read {label} from {path} ({len(data)} bytes)")
    return data


def load_artifacts(
    proof_path: PathLike,
    program_binary_path: PathLike,
    public_input_path: Optional[PathLike] = None,
) -> ProofArtifacts:
    """
    Load the three submission artifacts.

    A public input path of None means the proof has no public input. A path
    that is given but cannot be read fails the same way as the proof does.

    Raises:
        ArtifactError: If a requested file is missing, unreadable, or the
            proof is empty
    """
    proof = _read(proof_path, "proof", "proof")
    if not proof:
        raise ArtifactError("Proof file is empty", artifact="proof", path=str(proof_path))

    program_binary = _read(program_binary_path, "program_binary", "ELF")

    public_input = None
    if public_input_path is not None:
        public_input = _read(public_input_path, "public_input", "public inputs")

    return ProofArtifacts(
        proof=proof,
        program_binary=program_binary,
        public_input=public_input,
    )

"""
Medical reference data: medication dictionary and clinical protocols.
"""

from .dictionary import ClinicalProtocol, MedicalDictionary, load_protocols

__all__ = ["ClinicalProtocol", "MedicalDictionary", "load_protocols"]

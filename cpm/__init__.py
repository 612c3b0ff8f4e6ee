"""Contractile particle model of crowd motion, stress and attrition."""

"""
SBOM generation for Bundler projects.

SPDX 2.3 is emitted as a plain dict; CycloneDX 1.6 is built with
cyclonedx-python-lib and validated against the schema when the optional
validation dependencies are installed.
"""
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from cyclonedx.exception import MissingOptionalDependencyException
from cyclonedx.model import ExternalReference, ExternalReferenceType, XsUri
from cyclonedx.model.bom import Bom
from cyclonedx.model.component import Component, ComponentType
from cyclonedx.model.impact_analysis import ImpactAnalysisAffectedStatus
from cyclonedx.model.vulnerability import (BomTarget, BomTargetVersionRange,
                                           Vulnerability, VulnerabilityRating,
                                           VulnerabilityReference,
                                           VulnerabilitySeverity,
                                           VulnerabilitySource)
from cyclonedx.output.json import JsonV1Dot6
from cyclonedx.schema import SchemaVersion
from cyclonedx.validation.json import JsonStrictValidator
from packageurl import PackageURL

from . import __version__
from .cvss_utils import CVSSExtractor
from .models import Dependency, VulnerableDependency

logger = logging.getLogger(__name__)

SPDX_VERSION = "SPDX-2.3"
DOCUMENT_ID = "SPDXRef-DOCUMENT"
SUPPORTED_FORMATS = ("spdx", "cyclonedx", "cyclone-dx")

SEVERITY_MAP = {
    "critical": VulnerabilitySeverity.CRITICAL,
    "high": VulnerabilitySeverity.HIGH,
    "medium": VulnerabilitySeverity.MEDIUM,
    "low": VulnerabilitySeverity.LOW,
    "none": VulnerabilitySeverity.NONE,
}


def gem_purl(dependency: Dependency) -> PackageURL:
    return PackageURL(type="gem", name=dependency.name, version=dependency.version)


def gem_download_url(name: str, version: str) -> str:
    return f"https://rubygems.org/downloads/{name}-{version}.gem"


def gem_homepage_url(name: str) -> str:
    return f"https://rubygems.org/gems/{name}"


def spdx_id(name: str) -> str:
    # SPDX identifiers allow letters, digits, "." and "-" only
    return re.sub(r"[^A-Za-z0-9.\-]", "-", name)


class SbomGenerator:
    """Builds SPDX and CycloneDX documents from parsed dependencies."""

    def __init__(self, project_name: str = "ruby-project", clock: Optional[Callable[[], datetime]] = None):
        self.project_name = project_name
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def generate(self, dependencies: Iterable[Dependency], sbom_format: str,
                 vulnerable_dependencies: Optional[List[VulnerableDependency]] = None):
        """Dispatch on ``sbom_format``; raises ValueError for unknown formats."""
        fmt = (sbom_format or "").lower()
        if fmt == "spdx":
            return self.generate_spdx(dependencies)
        if fmt in ("cyclonedx", "cyclone-dx"):
            return self.generate_cyclonedx(dependencies, vulnerable_dependencies)
        raise ValueError(f"Unsupported SBOM format '{sbom_format}'. Use one of: {', '.join(SUPPORTED_FORMATS)}")

    def generate_spdx(self, dependencies: Iterable[Dependency]) -> dict:
        dependencies = list(dependencies)
        created = self.clock().strftime("%Y-%m-%dT%H:%M:%SZ")
        root_id = f"SPDXRef-Root-{spdx_id(self.project_name)}"

        packages = [{
            "SPDXID": root_id,
            "name": self.project_name,
            "downloadLocation": "NOASSERTION",
            "filesAnalyzed": False,
            "copyrightText": "NOASSERTION",
        }]
        relationships = [{
            "spdxElementId": DOCUMENT_ID,
            "relationshipType": "DESCRIBES",
            "relatedSpdxElement": root_id,
        }]

        for dep in dependencies:
            package_id = f"SPDXRef-Package-{spdx_id(dep.name)}"
            packages.append({
                "SPDXID": package_id,
                "name": dep.name,
                "versionInfo": dep.version,
                "downloadLocation": gem_download_url(dep.name, dep.version),
                "filesAnalyzed": False,
                "homepage": gem_homepage_url(dep.name),
                "copyrightText": "NOASSERTION",
                "externalRefs": [{
                    "referenceCategory": "PACKAGE-MANAGER",
                    "referenceType": "purl",
                    "referenceLocator": gem_purl(dep).to_string(),
                }],
            })
            relationships.append({
                "spdxElementId": DOCUMENT_ID,
                "relationshipType": "DESCRIBES",
                "relatedSpdxElement": package_id,
            })

        return {
            "spdxVersion": SPDX_VERSION,
            "dataLicense": "CC0-1.0",
            "SPDXID": DOCUMENT_ID,
            "name": f"{self.project_name}-sbom",
            "documentNamespace": f"https://gemguard.dev/spdx/{spdx_id(self.project_name)}-{uuid.uuid4()}",
            "creationInfo": {
                "created": created,
                "creators": [f"Tool: gemguard-{__version__}"],
                "licenseListVersion": "3.21",
            },
            "packages": packages,
            "relationships": relationships,
        }

    def generate_cyclonedx(
        self,
        dependencies: Iterable[Dependency],
        vulnerable_dependencies: Optional[List[VulnerableDependency]] = None,
    ) -> str:
        """Return a CycloneDX 1.6 JSON document, with vulnerabilities when given."""
        bom = Bom()
        root = Component(name=self.project_name, type=ComponentType.APPLICATION, bom_ref=f"root:{self.project_name}")
        bom.metadata.component = root

        components = {}
        for dep in dependencies:
            purl = gem_purl(dep)
            component = Component(
                name=dep.name,
                version=dep.version,
                type=ComponentType.LIBRARY,
                purl=purl,
                bom_ref=purl.to_string(),
                external_references=[
                    ExternalReference(type=ExternalReferenceType.DISTRIBUTION,
                                      url=XsUri(gem_download_url(dep.name, dep.version))),
                    ExternalReference(type=ExternalReferenceType.WEBSITE, url=XsUri(gem_homepage_url(dep.name))),
                ],
            )
            bom.components.add(component)
            components[dep.name] = component

        bom.register_dependency(root, components.values())

        for vulnerable in vulnerable_dependencies or []:
            component = components.get(vulnerable.dependency.name)
            if component is not None:
                bom.vulnerabilities.add(self._to_cdx_vulnerability(vulnerable, component))

        output = JsonV1Dot6(bom=bom)
        serialized = output.output_as_string(indent=2)
        self._validate(serialized)
        return serialized

    @staticmethod
    def _to_cdx_vulnerability(vulnerable: VulnerableDependency, component: Component) -> Vulnerability:
        record = vulnerable.vulnerability
        severity = SEVERITY_MAP.get(CVSSExtractor.normalize_severity(record.severity).lower(),
                                    VulnerabilitySeverity.UNKNOWN)

        vulnerability = Vulnerability(id=record.id, bom_ref=f"{record.id}:{component.bom_ref.value}")
        vulnerability.source = VulnerabilitySource(name="OSV.dev", url=XsUri(f"https://osv.dev/vulnerability/{record.id}"))
        vulnerability.description = record.summary or None
        vulnerability.recommendation = vulnerable.recommended_fix
        vulnerability.ratings.add(VulnerabilityRating(severity=severity, source=VulnerabilitySource(name="OSV.dev")))

        for alias in record.aliases:
            if alias.startswith("CVE-"):
                vulnerability.references.add(VulnerabilityReference(
                    id=alias, source=VulnerabilitySource(name="nvd", url=XsUri(f"https://nvd.nist.gov/vuln/detail/{alias}"))
                ))
            elif alias.startswith("GHSA-"):
                vulnerability.references.add(VulnerabilityReference(
                    id=alias, source=VulnerabilitySource(name="github", url=XsUri(f"https://github.com/advisories/{alias}"))
                ))

        versions = [BomTargetVersionRange(version=vulnerable.dependency.version,
                                          status=ImpactAnalysisAffectedStatus.AFFECTED)]
        versions.extend(
            BomTargetVersionRange(range=f"vers:gem/>={fixed}", status=ImpactAnalysisAffectedStatus.UNAFFECTED)
            for fixed in record.fixed_versions
        )
        vulnerability.affects.add(BomTarget(ref=component.bom_ref.value, versions=versions))
        return vulnerability

    @staticmethod
    def _validate(serialized: str) -> None:
        validator = JsonStrictValidator(SchemaVersion.V1_6)
        try:
            errors = validator.validate_str(serialized)
        except MissingOptionalDependencyException as error:
            logger.debug(f"CycloneDX validation skipped: {error}")
            return
        if errors:
            raise ValueError(f"Generated CycloneDX document is invalid: {errors!r}")

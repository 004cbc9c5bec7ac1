import os
import plistlib

from appsweep.config import BUNDLE_EXTENSION, MANIFEST_RELATIVE_PATH
from appsweep.errors import MalformedManifest, MissingManifest
from appsweep.models import BundleInfo


def _text(value):
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def name_from_filename(bundle_path):
    """'/Applications/Visual Studio Code.app' -> 'Visual Studio Code'."""
    name = os.path.basename(os.path.normpath(bundle_path))
    if name.endswith(BUNDLE_EXTENSION):
        name = name[:-len(BUNDLE_EXTENSION)]
    return name.strip()


class BundleReader:
    """Reads identifying metadata from a bundle's Contents/Info.plist."""

    def manifest_path(self, bundle_path):
        return os.path.join(bundle_path, MANIFEST_RELATIVE_PATH)

    def read(self, bundle_path):
        plist_path = self.manifest_path(bundle_path)
        if not os.path.isfile(plist_path):
            raise MissingManifest(bundle_path)

        try:
            with open(plist_path, 'rb') as fp:
                pl = plistlib.load(fp)
        except Exception as e:
            # plistlib surfaces bad values as assorted exception types
            raise MalformedManifest(bundle_path, str(e)) from e

        if not isinstance(pl, dict):
            raise MalformedManifest(bundle_path, "top level is not a dictionary")

        return BundleInfo(
            identifier=_text(pl.get("CFBundleIdentifier")),
            display_name=_text(pl.get("CFBundleDisplayName")) or _text(pl.get("CFBundleName")),
            version=_text(pl.get("CFBundleShortVersionString")) or _text(pl.get("CFBundleVersion")),
            executable=_text(pl.get("CFBundleExecutable")),
        )

    def identifier_of(self, bundle_path):
        """Best-effort identifier lookup; None when the manifest is unusable."""
        try:
            return self.read(bundle_path).identifier
        except (MissingManifest, MalformedManifest):
            return None

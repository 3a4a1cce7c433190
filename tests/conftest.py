"""
pytest configuration and fixtures for the ISOXML time log reader tests.

Provides:
- tools/ on sys.path (modules are imported by name, as installed)
- Hypothesis profiles, selected with HYPOTHESIS_PROFILE
- A small task set: TASKDATA document, TLG header descriptor, binary
"""

import os
import struct
import sys
from pathlib import Path

import pytest
from hypothesis import Phase, Verbosity, settings

# Add project paths
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))


# Default profile: balanced speed and coverage
settings.register_profile(
    "default",
    max_examples=100,
    deadline=None,
)

# CI profile: more thorough testing
settings.register_profile(
    "ci",
    max_examples=500,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)

# Dev profile: fast iteration
settings.register_profile(
    "dev",
    max_examples=10,
    deadline=None,
)

# Debug profile: verbose output
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)

settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "default"))


TASKDATA_XML = """\
<ISO11783_TaskData VersionMajor="4" VersionMinor="0" DataTransferOrigin="1">
  <CTR A="CTR1" B="Grower"/>
  <FRM A="FRM1" B="North Farm" I="CTR1"/>
  <PFD A="PFD1" C="Field 7" D="10000" F="FRM1"/>
  <PDT A="PDT1" B="Wheat"/>
  <PDT A="PDT2" B="Fertilizer"/>
  <DVC A="DVC-1" B="Sprayer" D="A00084000DE0B8A1" E="" F="" G="">
    <DET A="DET-1" B="1" C="1" D="Boom" E="0" F="0">
      <DOR A="1"/>
      <DOR A="2"/>
    </DET>
    <DET A="DET-2" B="2" C="2" D="Section 1" E="1" F="1">
      <DOR A="3"/>
    </DET>
    <DPD A="1" B="0001" C="1" D="8" E="Setpoint Volume"/>
    <DPD A="2" B="0074" C="1" D="8" E="Total Area"/>
    <DPD A="3" B="0001" C="1" D="8" E="Section Setpoint"/>
  </DVC>
  <TSK A="TSK1" B="Spraying" D="FRM1" E="PFD1" G="4">
    <DAN A="A00084000DE0B8A1" C="DVC-1"/>
    <TLG A="TLG00001"/>
  </TSK>
  <TSK A="TSK2" B="Seeding plan" D="FRM1" E="PFD1" G="1"/>
</ISO11783_TaskData>
"""

TLG_HEADER_XML = """\
<TIM A="" D="4">
  <PTN A="" B="" D=""/>
  <DLV A="0001" B="0" C="DET-1"/>
  <DLV A="0001" B="5" C="DET-2"/>
  <DLV A="0099" C="DET-9"/>
</TIM>
"""


def pack_record(tofd, days, north, east, status):
    """Header part of one record for TLG_HEADER_XML."""
    return struct.pack('<IHiiB', tofd, days, north, east, status)


def pack_change_set(updates):
    """Change-set bytes for {channel index: value}."""
    data = bytes([len(updates)])
    for index, value in updates.items():
        data += struct.pack('<Bi', index, value)
    return data


@pytest.fixture
def taskdata_xml():
    return TASKDATA_XML


@pytest.fixture
def tlg_header_xml():
    return TLG_HEADER_XML


@pytest.fixture
def tlg_binary():
    """Three records; two change-sets between them."""
    return (
        pack_record(3661000, 15706, 550000000, 100000000, 4)
        + pack_change_set({0: 100, 1: 7})
        + pack_record(3662000, 15706, 550000010, 100000020, 4)
        + pack_change_set({2: -3})
        + pack_record(3663000, 15706, 550000020, 100000040, 5)
    )


@pytest.fixture
def task_dir(tmp_path, taskdata_xml, tlg_header_xml, tlg_binary):
    """Task set on disk, with file names in mixed case."""
    (tmp_path / "TASKDATA.XML").write_text(taskdata_xml)
    (tmp_path / "tlg00001.xml").write_text(tlg_header_xml)
    (tmp_path / "TLG00001.bin").write_bytes(tlg_binary)
    return tmp_path

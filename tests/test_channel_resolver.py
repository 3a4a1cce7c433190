"""
Tests for resolving DLV declarations into channels.
"""

import pytest
import sys
import xml.etree.ElementTree as ET
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'tools'))

from channel_resolver import ChannelResolver, AmbiguousChannelError, parse_literal
from isoxml_catalog import SchemaCatalog
from timelog_types import ValueKind


@pytest.fixture
def resolver(taskdata_xml):
    return ChannelResolver(SchemaCatalog(ET.fromstring(taskdata_xml)))


def make_resolver(body: str) -> ChannelResolver:
    root = ET.fromstring(f'<ISO11783_TaskData>{body}</ISO11783_TaskData>')
    return ChannelResolver(SchemaCatalog(root))


class TestResolve:
    """Tests for ChannelResolver.resolve."""

    def test_named_channel(self, resolver):
        channel = resolver.resolve('DET-1', '0074', '12')
        assert channel.name == 'Total Area'
        assert channel.process_data_designator == 'Total Area'
        assert channel.device_designator == 'Sprayer'
        assert channel.element_designator == 'Boom'
        assert channel.element_number == 'DET-1'
        assert channel.ddi == 0x74
        assert channel.kind is ValueKind.I32
        assert channel.series.values == [12]
        assert resolver.unresolved == []

    def test_same_ddi_on_two_elements(self, resolver):
        """The element's DOR set picks the DPD, not the first DDI match."""
        boom = resolver.resolve('DET-1', '0001')
        section = resolver.resolve('DET-2', '0001')
        assert boom.name == 'Setpoint Volume'
        assert boom.element_designator == 'Boom'
        assert section.name == 'Section Setpoint'
        assert section.element_designator == 'Section 1'

    def test_ddi_text_must_match_exactly(self):
        """DDI codes are compared as written, so 'b4' does not name a DPD declared as '00B4'."""
        resolver = make_resolver(
            '<DVC A="D1" B="Dev"><DET A="E1" D="El"><DOR A="5"/></DET>'
            '<DPD A="5" B="00B4" E="Yield"/></DVC>'
        )
        assert resolver.resolve('E1', '00B4').name == 'Yield'
        channel = resolver.resolve('E1', 'b4')
        assert channel.name == 'E1'
        assert channel.ddi == 0xB4
        assert resolver.unresolved == [('E1', 'b4')]

    def test_unknown_element_falls_back(self, resolver):
        channel = resolver.resolve('DET-9', '0099', '3')
        assert channel.name == 'DET-9'
        assert channel.device_designator == ''
        assert channel.element_designator == ''
        assert channel.process_data_designator == ''
        assert channel.element_number == ''
        assert channel.ddi == 0x99
        assert channel.series.values == [3]
        assert resolver.unresolved == [('DET-9', '0099')]

    def test_ddi_not_referenced_by_element_falls_back(self, resolver):
        """DET-2 does not reference the Total Area DPD."""
        channel = resolver.resolve('DET-2', '0074')
        assert channel.name == 'DET-2'

    def test_multiple_matches_fall_back(self):
        resolver = make_resolver(
            '<DVC A="D1" B="Dev"><DET A="E1" D="El"><DOR A="1"/><DOR A="2"/></DET>'
            '<DPD A="1" B="0001" E="First"/><DPD A="2" B="0001" E="Second"/></DVC>'
        )
        with pytest.raises(AmbiguousChannelError) as exc:
            resolver.lookup('E1', '0001')
        assert exc.value.count == 2
        assert resolver.resolve('E1', '0001').name == 'E1'

    def test_reused_object_id_across_devices_falls_back(self):
        """Two devices reuse DPD id 1 for the same DDI; matching is document-wide."""
        resolver = make_resolver(
            '<DVC A="D1" B="Seeder"><DET A="E1" D="Hopper"><DOR A="1"/></DET>'
            '<DPD A="1" B="0001" E="Seed rate"/></DVC>'
            '<DVC A="D2" B="Spreader"><DET A="E2" D="Disc"><DOR A="1"/></DET>'
            '<DPD A="1" B="0001" E="Spread rate"/></DVC>'
        )
        with pytest.raises(AmbiguousChannelError) as exc:
            resolver.lookup('E1', '0001')
        assert exc.value.count == 2

        first = resolver.resolve('E1', '0001')
        second = resolver.resolve('E2', '0001')
        assert (first.name, first.device_designator) == ('E1', '')
        assert (second.name, second.device_designator) == ('E2', '')
        assert resolver.unresolved == [('E1', '0001'), ('E2', '0001')]

    def test_optional_designators_missing(self):
        resolver = make_resolver(
            '<DVC A="D1"><DET A="E1"><DOR A="1"/></DET><DPD A="1" B="0001"/></DVC>'
        )
        channel = resolver.resolve('E1', '0001')
        assert channel.name == ''
        assert channel.device_designator == ''
        assert channel.element_designator == ''
        assert channel.element_number == 'E1'

    def test_malformed_ddi(self, resolver):
        channel = resolver.resolve('DET-1', 'zz')
        assert channel.ddi == 0
        assert channel.name == 'DET-1'

    def test_resolve_dlv(self, resolver):
        dlv = ET.fromstring('<DLV A="0001" B="42" C="DET-2"/>')
        channel = resolver.resolve_dlv(dlv)
        assert channel.name == 'Section Setpoint'
        assert channel.series.values == [42]


class TestParseLiteral:
    """Tests for DLV literal parsing."""

    @pytest.mark.parametrize("text,expected", [
        ('0', 0),
        ('42', 42),
        ('-5', -5),
        (' 7 ', 7),
        ('2147483647', 2147483647),
        ('-2147483648', -2147483648),
    ])
    def test_valid(self, text, expected):
        assert parse_literal(text) == expected

    @pytest.mark.parametrize("text", [None, '', 'abc', '1.5', '2147483648', '-2147483649'])
    def test_malformed_is_zero(self, text):
        assert parse_literal(text) == 0
